"""Date parsing for bank-export text.

Attempts, in order (first success wins):

1. Year-first ``YYYY-M-D`` (``-``, ``/`` or ``.`` separators).
2. Day-first ``D-M-YY`` / ``D-M-YYYY``; two-digit years are expanded per the
   configured :data:`TwoDigitYearPolicy`.
3. A general-purpose parser (:mod:`dateutil`) for anything else
   (``"13 Jan 2025"``, ``"Jan 13, 2025"``).

Results are ISO ``YYYY-MM-DD`` calendar dates. Values are built as naive
:class:`datetime.date` objects, so no timezone conversion can move them to a
neighbouring day. Parsing never raises on bad input.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Literal, get_args

from dateutil import parser as date_parser

from .logging_setup import get_logger

TwoDigitYearPolicy = Literal["fixed-2000", "pivot-1950"]
"""How ``YY`` years are expanded.

- ``"fixed-2000"``: always ``2000 + YY`` (default).
- ``"pivot-1950"``: ``YY < 50`` maps to ``20YY``, ``YY >= 50`` to ``19YY``.
"""

TWO_DIGIT_YEAR_POLICIES: tuple[str, ...] = get_args(TwoDigitYearPolicy)

_YEAR_FIRST_RE = re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})(?!\d)")
_DAY_FIRST_RE = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{2,4})(?!\d)")

# Fields dateutil fills in when absent; an input that leaves the year unset is
# rejected instead of silently landing in this sentinel year.
_FALLBACK_DEFAULT = datetime(1, 1, 1)

_logger = get_logger("budget_ingest.dates")


def expand_two_digit_year(year: int, policy: TwoDigitYearPolicy = "fixed-2000") -> int:
    """Expand ``year`` when it has two digits; four-digit years pass through."""

    if year >= 100:
        return year
    if policy == "pivot-1950":
        return 2000 + year if year < 50 else 1900 + year
    if policy == "fixed-2000":
        return 2000 + year
    raise ValueError(
        f"unknown two-digit year policy: {policy!r}; expected one of {TWO_DIGIT_YEAR_POLICIES}"
    )


def _calendar_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _year_first(s: str) -> date | None:
    m = _YEAR_FIRST_RE.match(s)
    if not m:
        return None
    return _calendar_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def _day_first(s: str, policy: TwoDigitYearPolicy) -> date | None:
    m = _DAY_FIRST_RE.match(s)
    if not m:
        return None
    year = expand_two_digit_year(int(m.group(3)), policy)
    return _calendar_date(year, int(m.group(2)), int(m.group(1)))


def _general(s: str) -> date | None:
    try:
        parsed = date_parser.parse(s, default=_FALLBACK_DEFAULT)
    except (ValueError, OverflowError):
        return None
    if parsed.year == _FALLBACK_DEFAULT.year:
        return None
    return parsed.date()


def parse_date(raw: str | None, *, two_digit_year: TwoDigitYearPolicy = "fixed-2000") -> str | None:
    """Parse ``raw`` into an ISO ``YYYY-MM-DD`` string; ``None`` on failure.

    >>> parse_date("13-01-2025")
    '2025-01-13'
    >>> parse_date("13.01.25")
    '2025-01-13'
    """

    if two_digit_year not in TWO_DIGIT_YEAR_POLICIES:
        raise ValueError(
            f"unknown two-digit year policy: {two_digit_year!r}; "
            f"expected one of {TWO_DIGIT_YEAR_POLICIES}"
        )
    if raw is None:
        return None
    s = str(raw).strip()
    if not s:
        return None

    m = _DAY_FIRST_RE.match(s)
    if m and len(m.group(3)) == 3:
        # Truncated year such as "13-01-202"; no century is guessed.
        return None

    found = _year_first(s) or _day_first(s, two_digit_year) or _general(s)
    return found.isoformat() if found is not None else None


def parse_date_or_today(
    raw: str | None,
    *,
    two_digit_year: TwoDigitYearPolicy = "fixed-2000",
    today: date | None = None,
) -> str:
    """Like :func:`parse_date` but falls back to today's date, logging a warning."""

    parsed = parse_date(raw, two_digit_year=two_digit_year)
    if parsed is not None:
        return parsed
    fallback = (today or date.today()).isoformat()
    _logger.warning("date:unparseable raw=%r; using today %s", raw, fallback)
    return fallback


def budget_month(iso_date: str | None) -> str | None:
    """Return the first day of the month for an ISO date (``None`` passes through)."""

    if iso_date is None:
        return None
    return date.fromisoformat(iso_date).replace(day=1).isoformat()


__all__ = [
    "TWO_DIGIT_YEAR_POLICIES",
    "TwoDigitYearPolicy",
    "budget_month",
    "expand_two_digit_year",
    "parse_date",
    "parse_date_or_today",
]
