"""Public interface for the ``budget_ingest`` package.

This module exposes the parsing, matching and caching functions plus the
public models as the stable import surface. There is no runtime logic here,
only symbol re-exports.
"""

from .amounts import parse_amount, parse_amount_or_zero
from .dates import budget_month, parse_date, parse_date_or_today
from .enrichment import suggest_category
from .ingest import load_records
from .matching import RuleSet, match_descriptor
from .models import (
    AiSuggestion,
    MatchResult,
    MerchantRule,
    ParsedTransaction,
    RawRecord,
    RuleCacheSnapshot,
)
from .normalizer import apply_noise_filters, clean_descriptor
from .pipeline import (
    deduplicate,
    enrich_pending,
    parse_record,
    parse_records,
    resolve_rules,
)
from .rule_cache import JsonFileStorage, MemoryStorage, RuleCache
from .settings import IngestSettings
from .similarity import best_match, edit_distance, similarity

__all__ = [
    # Parsers
    "parse_amount",
    "parse_amount_or_zero",
    "parse_date",
    "parse_date_or_today",
    "budget_month",
    # Similarity / normalization / matching
    "edit_distance",
    "similarity",
    "best_match",
    "apply_noise_filters",
    "clean_descriptor",
    "match_descriptor",
    "RuleSet",
    # Pipeline
    "load_records",
    "parse_record",
    "parse_records",
    "deduplicate",
    "resolve_rules",
    "enrich_pending",
    "suggest_category",
    # Rule cache
    "RuleCache",
    "MemoryStorage",
    "JsonFileStorage",
    # Settings / models
    "IngestSettings",
    "RawRecord",
    "MerchantRule",
    "MatchResult",
    "ParsedTransaction",
    "AiSuggestion",
    "RuleCacheSnapshot",
]
