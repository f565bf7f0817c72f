"""Data models for ``budget_ingest``.

Inputs (``RawRecord``, ``MerchantRule``) are Pydantic models so records coming
from JSON exports or the storage layer are validated once at the boundary.
Rule fields accept both the storage column names (``source_name``) and the
camelCase names used by the web client (``sourceName``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

MatchMode = Literal["exact", "fuzzy"]
MatchTier = Literal["exact", "fuzzy"]

# Fixed confidence per matching tier; never a continuous similarity score.
EXACT_CONFIDENCE: float = 1.0
FUZZY_CONFIDENCE: float = 0.8
NO_MATCH_CONFIDENCE: float = 0.0

ISSUE_AMOUNT_UNPARSEABLE = "amount_unparseable"
ISSUE_DATE_UNPARSEABLE = "date_unparseable"


def _none_to_empty(v: Any) -> Any:
    return "" if v is None else v


def round_currency(value: float | int | str | Decimal) -> float:
    """Round to exactly two decimal places (half away from zero)."""

    try:
        d = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {value!r}") from exc
    if not d.is_finite():
        raise ValueError(f"invalid amount: {value!r}")
    # Room for every integer digit plus the two cents digits.
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, d.adjusted() + 3)
        return float(d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class RawRecord(BaseModel):
    """One untyped transaction line handed over by an import/paste step."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    raw_amount: str = Field(default="", validation_alias=AliasChoices("raw_amount", "rawAmount"))
    raw_date: str = Field(default="", validation_alias=AliasChoices("raw_date", "rawDate"))
    raw_descriptor: str = Field(
        default="", validation_alias=AliasChoices("raw_descriptor", "rawDescriptor")
    )

    @field_validator("raw_amount", "raw_date", "raw_descriptor", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Any:
        v = _none_to_empty(v)
        if isinstance(v, int | float | Decimal) and not isinstance(v, bool):
            return str(v)
        return v


class MerchantRule(BaseModel):
    """A user-defined mapping from a descriptor pattern to a merchant and category.

    ``source_name`` is the raw-form match key, ``clean_source_name`` the
    canonical merchant label. At least one of them must be non-empty.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    source_name: str = Field(
        default="", validation_alias=AliasChoices("source_name", "sourceName")
    )
    clean_source_name: str = Field(
        default="", validation_alias=AliasChoices("clean_source_name", "cleanSourceName")
    )
    match_mode: MatchMode = Field(
        default="fuzzy", validation_alias=AliasChoices("match_mode", "matchMode")
    )
    auto_category: str = Field(
        default="", validation_alias=AliasChoices("auto_category", "autoCategory")
    )
    auto_sub_category: str | None = Field(
        default=None, validation_alias=AliasChoices("auto_sub_category", "autoSubCategory")
    )

    @field_validator("source_name", "clean_source_name", "auto_category", mode="before")
    @classmethod
    def _null_text(cls, v: Any) -> Any:
        return _none_to_empty(v)

    @field_validator("match_mode", mode="before")
    @classmethod
    def _normalize_mode(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "fuzzy"
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("auto_sub_category")
    @classmethod
    def _empty_sub_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v or None

    @model_validator(mode="after")
    def _require_a_name(self) -> MerchantRule:
        if not self.source_name and not self.clean_source_name:
            raise ValueError("rule requires source_name or clean_source_name")
        return self


class RuleCacheSnapshot(BaseModel):
    """Point-in-time copy of the rule table as held in client-local storage."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: float
    rules: list[MerchantRule]

    def age_seconds(self, now: float) -> float:
        return max(0.0, now - self.timestamp)

    def is_stale(self, max_age_seconds: float | None, *, now: float) -> bool:
        """Return True when older than ``max_age_seconds`` (never stale when None)."""

        if max_age_seconds is None:
            return False
        return self.age_seconds(now) > max_age_seconds


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Outcome of matching one descriptor against the rule table.

    ``clean_name`` is the rule's canonical merchant label when a rule matched,
    otherwise the normalized descriptor itself. ``clean_descriptor`` is always
    the normalized descriptor.
    """

    clean_name: str
    category: str
    sub_category: str | None
    matched: bool
    confidence: float
    clean_descriptor: str = ""
    tier: MatchTier | None = None
    rule: MerchantRule | None = None


class AiSuggestion(BaseModel):
    """Category guess returned by the optional AI enrichment call."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    category: str
    sub_category: str | None = None
    merchant_description: str | None = None
    confidence: float = 0.0

    @field_validator("category")
    @classmethod
    def _category_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("category must be non-empty")
        return v

    @field_validator("sub_category", "merchant_description")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence_in_unit_interval(cls, v: Any) -> float:
        if v is None:
            return 0.0
        fv = float(v)
        if 0.0 <= fv <= 1.0:
            return fv
        raise ValueError("confidence must be within [0,1]")


class ParsedTransaction(BaseModel):
    """Canonical, categorized record produced from one ``RawRecord``.

    ``amount`` always carries exactly two decimals; ``date`` is an ISO calendar
    date or ``None`` when the raw date could not be parsed. ``confidence`` is
    the fixed tier value of the rule match (0, 0.8 or 1.0).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    amount: float
    date: str | None
    clean_descriptor: str
    category: str
    sub_category: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)
    matched: bool

    raw_descriptor: str = ""
    merchant: str = ""
    budget_month: str | None = None
    fingerprint: str = ""
    issues: tuple[str, ...] = ()
    suggestion: AiSuggestion | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _two_decimals(cls, v: Any) -> float:
        return round_currency(v)

    @field_validator("date", "budget_month")
    @classmethod
    def _iso_calendar_date(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return date.fromisoformat(v).isoformat()

    @property
    def pending(self) -> bool:
        """True when no rule matched and manual or AI triage is required."""

        return not self.matched


__all__ = [
    "AiSuggestion",
    "EXACT_CONFIDENCE",
    "FUZZY_CONFIDENCE",
    "ISSUE_AMOUNT_UNPARSEABLE",
    "ISSUE_DATE_UNPARSEABLE",
    "MatchMode",
    "MatchResult",
    "MatchTier",
    "MerchantRule",
    "NO_MATCH_CONFIDENCE",
    "ParsedTransaction",
    "RawRecord",
    "RuleCacheSnapshot",
    "round_currency",
]
