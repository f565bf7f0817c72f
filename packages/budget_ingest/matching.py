"""Tiered rule matching for merchant descriptors.

Tiers, evaluated in order:

- **exact** (confidence 1.0): ``source_name`` equals the raw descriptor or
  ``clean_source_name`` equals the clean descriptor, ignoring case and
  surrounding whitespace (rule names are trimmed on validation).
- **fuzzy** (confidence 0.8): prefix/containment match between the rule's
  effective name and the raw/clean descriptor. Rules with
  ``match_mode == "exact"`` never take part.

Within a tier the first rule in table order wins. Rule order is part of the
contract of :class:`RuleSet`; callers loading rules from storage must keep the
storage order (insertion order) when building it.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from .models import (
    EXACT_CONFIDENCE,
    FUZZY_CONFIDENCE,
    NO_MATCH_CONFIDENCE,
    MatchResult,
    MerchantRule,
)
from .normalizer import clean_descriptor

_MIN_RULE_NAME_LEN = 2
_MIN_CLEAN_PREFIX_LEN = 4


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Immutable, ordered rule table. Position in ``rules`` is the tie-break."""

    rules: tuple[MerchantRule, ...] = ()

    @classmethod
    def of(cls, rules: Iterable[MerchantRule | dict]) -> RuleSet:
        """Build a rule set, validating plain mappings into :class:`MerchantRule`."""

        return cls(
            tuple(
                r if isinstance(r, MerchantRule) else MerchantRule.model_validate(r)
                for r in rules
            )
        )

    def __iter__(self) -> Iterator[MerchantRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


def _effective_name(rule: MerchantRule) -> str:
    return (rule.source_name or rule.clean_source_name).strip().lower()


def _is_exact(rule: MerchantRule, raw_lower: str, clean_lower: str) -> bool:
    if rule.source_name and rule.source_name.lower() == raw_lower:
        return True
    return bool(rule.clean_source_name) and rule.clean_source_name.lower() == clean_lower


def _is_fuzzy(rule: MerchantRule, raw_lower: str, clean_lower: str) -> bool:
    if rule.match_mode == "exact":
        return False
    name = _effective_name(rule)
    if len(name) < _MIN_RULE_NAME_LEN:
        return False
    return (
        raw_lower.startswith(name)
        or clean_lower.startswith(name)
        or (len(clean_lower) >= _MIN_CLEAN_PREFIX_LEN and name.startswith(clean_lower))
        or name in raw_lower
    )


def find_exact_rule(
    raw: str, clean: str, rules: Sequence[MerchantRule] | RuleSet
) -> MerchantRule | None:
    raw_lower, clean_lower = raw.lower(), clean.lower()
    return next((r for r in rules if _is_exact(r, raw_lower, clean_lower)), None)


def find_fuzzy_rule(
    raw: str, clean: str, rules: Sequence[MerchantRule] | RuleSet
) -> MerchantRule | None:
    raw_lower, clean_lower = raw.lower(), clean.lower()
    return next((r for r in rules if _is_fuzzy(r, raw_lower, clean_lower)), None)


def _matched(rule: MerchantRule, clean: str, confidence: float, tier: str) -> MatchResult:
    return MatchResult(
        clean_name=rule.clean_source_name or clean,
        category=rule.auto_category,
        sub_category=rule.auto_sub_category,
        matched=True,
        confidence=confidence,
        clean_descriptor=clean,
        tier=tier,  # type: ignore[arg-type]
        rule=rule,
    )


def match_descriptor(
    raw_descriptor: str | None,
    rules: Sequence[MerchantRule] | RuleSet,
    noise_filters: Iterable[object] = (),
) -> MatchResult:
    """Find the best rule for ``raw_descriptor`` and return a :class:`MatchResult`.

    An unmatched descriptor is a normal outcome: ``matched=False``,
    ``confidence=0`` and ``clean_name`` set to the clean descriptor so the
    record can surface for manual triage.
    """

    raw = (raw_descriptor or "").strip()
    clean = clean_descriptor(raw, noise_filters)

    rule = find_exact_rule(raw, clean, rules)
    if rule is not None:
        return _matched(rule, clean, EXACT_CONFIDENCE, "exact")

    rule = find_fuzzy_rule(raw, clean, rules)
    if rule is not None:
        return _matched(rule, clean, FUZZY_CONFIDENCE, "fuzzy")

    return MatchResult(
        clean_name=clean,
        category="",
        sub_category=None,
        matched=False,
        confidence=NO_MATCH_CONFIDENCE,
        clean_descriptor=clean,
    )


__all__ = ["RuleSet", "find_exact_rule", "find_fuzzy_rule", "match_descriptor"]
