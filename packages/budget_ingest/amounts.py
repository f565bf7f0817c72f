"""Locale-tolerant amount parsing for bank-export text.

Exports mix conventions freely: ``"1.234,56 kr."`` (Danish/EU),
``"$1,234.56"`` (US), ``"1000"``, ``"-3.126,38"`` and trailing signs such as
``"250,00-"``. There is no out-of-band locale signal, so the separator roles
are decided by character-level heuristics only, expressed below as an ordered
decision table where the first matching row wins.

Two call-site contracts exist:

- :func:`parse_amount` is strict and returns ``None`` when nothing parseable
  remains.
- :func:`parse_amount_or_zero` is lenient and returns ``0.0`` instead, which
  suits form inputs.

Results are rounded to exactly two decimals via :class:`decimal.Decimal`.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Literal, get_args

from .models import round_currency

AmountLocale = Literal["auto", "us", "eu"]

AMOUNT_LOCALES: tuple[str, ...] = get_args(AmountLocale)

_NOT_NUMERIC_RE = re.compile(r"[^\d.,-]")
_TRAILING_SEPARATORS_RE = re.compile(r"[.,]+$")
_WHOLE_UNITS_RE = re.compile(r"[.,]-$")


# ---------------------------------------------------------------------------
# Separator decision table
# ---------------------------------------------------------------------------


def _single_decimal_separator(s: str, sep: str) -> bool:
    """True when ``sep`` occurs exactly once with at most two digits after it."""

    if s.count(sep) != 1:
        return False
    return len(s) - s.rindex(sep) - 1 <= 2


def _as_decimal_separator(sep: str, thousands: str) -> Callable[[str], str]:
    def _normalize(s: str) -> str:
        return s.replace(thousands, "").replace(sep, ".")

    return _normalize


def _drop(*seps: str) -> Callable[[str], str]:
    def _normalize(s: str) -> str:
        for sep in seps:
            s = s.replace(sep, "")
        return s

    return _normalize


@dataclass(frozen=True, slots=True)
class SeparatorRule:
    """One row of the decision table: a predicate and the normalization it selects."""

    name: str
    applies: Callable[[str, str], bool]
    normalize: Callable[[str], str]


SEPARATOR_RULES: tuple[SeparatorRule, ...] = (
    SeparatorRule(
        "both-comma-last",
        lambda s, loc: "," in s and "." in s and s.rindex(",") > s.rindex("."),
        _as_decimal_separator(",", "."),
    ),
    SeparatorRule(
        "both-dot-last",
        lambda s, loc: "," in s and "." in s and s.rindex(".") > s.rindex(","),
        _as_decimal_separator(".", ","),
    ),
    SeparatorRule(
        "comma-only-eu",
        lambda s, loc: "," in s and loc == "eu",
        _as_decimal_separator(",", "."),
    ),
    SeparatorRule(
        "comma-only-us",
        lambda s, loc: "," in s and loc == "us",
        _drop(","),
    ),
    SeparatorRule(
        "dot-only-us",
        lambda s, loc: "." in s and loc == "us",
        _as_decimal_separator(".", ","),
    ),
    SeparatorRule(
        "dot-only-eu",
        lambda s, loc: "." in s and loc == "eu",
        _drop("."),
    ),
    SeparatorRule(
        "comma-decimal",
        lambda s, loc: "," in s and _single_decimal_separator(s, ","),
        _as_decimal_separator(",", "."),
    ),
    SeparatorRule(
        "comma-thousands",
        lambda s, loc: "," in s,
        _drop(","),
    ),
    SeparatorRule(
        "dot-decimal",
        lambda s, loc: "." in s and _single_decimal_separator(s, "."),
        _as_decimal_separator(".", ","),
    ),
    SeparatorRule(
        "dot-thousands",
        lambda s, loc: "." in s,
        _drop("."),
    ),
    SeparatorRule(
        "plain",
        lambda s, loc: True,
        lambda s: s,
    ),
)


def select_separator_rule(digits: str, locale: AmountLocale = "auto") -> SeparatorRule:
    """Return the first decision-table row that applies to ``digits``.

    ``digits`` must already be reduced to digits and separators (no sign).
    """

    for rule in SEPARATOR_RULES:
        if rule.applies(digits, locale):
            return rule
    raise AssertionError("decision table has a catch-all row")  # pragma: no cover


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _validate_locale(locale: str) -> AmountLocale:
    if locale not in AMOUNT_LOCALES:
        raise ValueError(f"unknown amount locale: {locale!r}; expected one of {AMOUNT_LOCALES}")
    return locale  # type: ignore[return-value]


def _to_decimal(raw: str, locale: AmountLocale) -> Decimal | None:
    text = raw.strip()
    # Accounting notation: "(1.234,56)" is negative.
    negative = len(text) >= 2 and text.startswith("(") and text.endswith(")")

    s = _NOT_NUMERIC_RE.sub("", text)
    # "100,-" means whole units, not a trailing minus.
    s = _WHOLE_UNITS_RE.sub("", s)
    # Separators left behind by stripped currency suffixes, e.g. "kr.".
    s = _TRAILING_SEPARATORS_RE.sub("", s)
    if s.startswith("-"):
        negative = True
        s = s.lstrip("-")
    if s.endswith("-"):
        negative = True
        s = _TRAILING_SEPARATORS_RE.sub("", s.rstrip("-"))
    if not s or "-" in s or not any(ch.isdigit() for ch in s):
        return None

    rule = select_separator_rule(s, locale)
    normalized = rule.normalize(s)
    try:
        d = Decimal(normalized)
    except InvalidOperation:
        return None
    return -d if negative else d


def parse_amount(raw: str | None, locale: AmountLocale = "auto") -> float | None:
    """Parse free-text ``raw`` into a signed amount rounded to two decimals.

    Returns ``None`` when no number can be recovered. Never raises for bad
    input text; an unknown ``locale`` name raises ``ValueError``.

    Examples
    --------
    >>> parse_amount("-3.126,38 kr.")
    -3126.38
    >>> parse_amount("1.000", "us")
    1.0
    """

    loc = _validate_locale(locale)
    if raw is None:
        return None
    d = _to_decimal(str(raw), loc)
    if d is None:
        return None
    value = round_currency(d)
    # Digit runs too long for a float (mis-mapped account columns).
    if not math.isfinite(value):
        return None
    return value


def parse_amount_or_zero(raw: str | None, locale: AmountLocale = "auto") -> float:
    """Lenient variant of :func:`parse_amount` that defaults to ``0.0``."""

    value = parse_amount(raw, locale)
    return 0.0 if value is None else value


__all__ = [
    "AMOUNT_LOCALES",
    "AmountLocale",
    "SEPARATOR_RULES",
    "SeparatorRule",
    "parse_amount",
    "parse_amount_or_zero",
    "select_separator_rule",
]
