"""Merchant descriptor normalization (noise filtering).

Turns a raw statement descriptor such as ``"BS TOPDANMARK - EN DEL AF IF FO"``
or ``"PAYPAL *SPOTIFY 4029357733"`` into a clean descriptor suitable for rule
matching. The steps run in a fixed order and user noise filters are applied in
the exact order configured, so the function is order-sensitive by contract.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .logging_setup import get_logger

_logger = get_logger("budget_ingest.normalizer")

# Statement separators: everything from the first match onward is dropped.
_SEPARATOR_RE = re.compile(r"\*|  ")

# Legacy processor / card-network boilerplate, matched at the start only.
LEGACY_PREFIXES: tuple[str, ...] = ("PAYPAL *", "SUMUP *", "IZ *", "GOOGLE *", "BS ", "BS")
_LEGACY_PREFIX_RE = re.compile(
    "^(?:" + "|".join(re.escape(p) for p in LEGACY_PREFIXES) + ")", re.IGNORECASE
)

_LEADING_REFERENCE_RE = re.compile(r"^(?:[#\s]*\d+[\s-])+")
_TRAILING_REFERENCE_RE = re.compile(r"(?:[\s#-]+\d+)+$")
_INNER_REFERENCE_RE = re.compile(r"(?:\s+\d{4,})+\s+")

DOMAIN_SUFFIXES: tuple[str, ...] = (".com", ".co.uk", ".dk", ".net", ".org")
_DOMAIN_SUFFIX_RE = re.compile(
    "(?:" + "|".join(re.escape(s) for s in DOMAIN_SUFFIXES) + ")$", re.IGNORECASE
)


def _truncate_at_separator(raw: str) -> str:
    m = _SEPARATOR_RE.search(raw)
    return (raw[: m.start()] if m else raw).strip()


def apply_noise_filters(text: str, noise_filters: Iterable[object]) -> str:
    """Remove every case-insensitive literal occurrence of each filter, in order.

    Filters are treated as literal text, never as user-authored regular
    expressions. A malformed filter is logged and skipped.
    """

    cleaned = text
    for flt in noise_filters:
        if flt is None or flt == "":
            continue
        if not isinstance(flt, str):
            _logger.warning("noise_filter:invalid pattern=%r (not text); skipping", flt)
            continue
        try:
            pattern = re.compile(re.escape(flt), re.IGNORECASE)
        except re.error:
            _logger.warning("noise_filter:invalid pattern=%r; skipping", flt)
            continue
        cleaned = pattern.sub("", cleaned).strip()
    return cleaned


def _strip_reference_numbers(text: str) -> str:
    text = _LEADING_REFERENCE_RE.sub("", text).strip()
    text = _TRAILING_REFERENCE_RE.sub("", text).strip()
    return _INNER_REFERENCE_RE.sub(" ", text).strip()


def clean_descriptor(raw: str | None, noise_filters: Iterable[object] = ()) -> str:
    """Return the clean descriptor for ``raw``.

    Steps
    -----
    1. Truncate at the first statement separator (``*`` or a double space).
    2. Apply user noise filters in list order.
    3. Strip legacy processor prefixes (``PAYPAL *``, ``BS`` ...).
    4. Strip leading/trailing reference numbers and collapse inner runs of
       four or more digits.
    5. Strip a trailing domain suffix (``.com``, ``.dk`` ...).
    """

    if not raw:
        return ""
    cleaned = _truncate_at_separator(raw)
    cleaned = apply_noise_filters(cleaned, noise_filters)
    cleaned = _LEGACY_PREFIX_RE.sub("", cleaned).strip()
    cleaned = _strip_reference_numbers(cleaned)
    cleaned = _DOMAIN_SUFFIX_RE.sub("", cleaned)
    return cleaned.strip()


__all__ = [
    "DOMAIN_SUFFIXES",
    "LEGACY_PREFIXES",
    "apply_noise_filters",
    "clean_descriptor",
]
