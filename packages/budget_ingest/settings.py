"""Environment-driven settings for the ingestion pipeline.

Recognized variables (all optional):

- ``BUDGET_INGEST_AMOUNT_LOCALE``: ``auto`` (default), ``us`` or ``eu``.
- ``BUDGET_INGEST_TWO_DIGIT_YEAR``: ``fixed-2000`` (default) or ``pivot-1950``.
- ``BUDGET_INGEST_CACHE_DIR``: rule cache root (see :mod:`budget_ingest.rule_cache`).
- ``BUDGET_INGEST_MAX_WORKERS``: thread count for batch parsing (default 1).
- ``BUDGET_INGEST_RULE_CACHE_MAX_AGE``: seconds before a cached rule snapshot
  is considered stale (unset: never stale).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .amounts import AMOUNT_LOCALES, AmountLocale
from .dates import TWO_DIGIT_YEAR_POLICIES, TwoDigitYearPolicy
from .logging_setup import get_logger

_MAX_WORKERS_CAP = 32

_logger = get_logger("budget_ingest.settings")


def _choice(env: Mapping[str, str], name: str, allowed: tuple[str, ...], default: str) -> str:
    raw = (env.get(name) or "").strip().lower()
    if not raw:
        return default
    if raw not in allowed:
        raise ValueError(f"{name}={raw!r} is not one of {allowed}")
    return raw


def _resolve_max_workers(raw: str | None) -> int:
    try:
        n = int(raw) if raw else 1
    except ValueError:
        _logger.warning("settings:ignoring non-integer BUDGET_INGEST_MAX_WORKERS=%r", raw)
        n = 1
    return max(1, min(n, _MAX_WORKERS_CAP))


def _resolve_max_age(raw: str | None) -> float | None:
    if not raw or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        _logger.warning("settings:ignoring non-numeric BUDGET_INGEST_RULE_CACHE_MAX_AGE=%r", raw)
        return None
    return value if value >= 0 else None


@dataclass(frozen=True, slots=True)
class IngestSettings:
    amount_locale: AmountLocale = "auto"
    two_digit_year: TwoDigitYearPolicy = "fixed-2000"
    # None: the rule cache falls back to ./.cache under the working directory.
    cache_dir: Path | None = None
    max_workers: int = 1
    rule_cache_max_age: float | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> IngestSettings:
        """Build settings from ``env`` (defaults to ``os.environ``).

        Unknown locale/policy names raise ``ValueError`` so misconfiguration
        fails at startup rather than silently changing parse results.
        """

        env = os.environ if env is None else env
        cache_dir_raw = (env.get("BUDGET_INGEST_CACHE_DIR") or "").strip()
        cache_dir = Path(cache_dir_raw).expanduser().resolve() if cache_dir_raw else None
        return cls(
            amount_locale=_choice(  # type: ignore[arg-type]
                env, "BUDGET_INGEST_AMOUNT_LOCALE", AMOUNT_LOCALES, "auto"
            ),
            two_digit_year=_choice(  # type: ignore[arg-type]
                env, "BUDGET_INGEST_TWO_DIGIT_YEAR", TWO_DIGIT_YEAR_POLICIES, "fixed-2000"
            ),
            cache_dir=cache_dir,
            max_workers=_resolve_max_workers(env.get("BUDGET_INGEST_MAX_WORKERS")),
            rule_cache_max_age=_resolve_max_age(env.get("BUDGET_INGEST_RULE_CACHE_MAX_AGE")),
        )


__all__ = ["IngestSettings"]
