"""Raw record → :class:`ParsedTransaction` pipeline.

Public API:
    - :func:`parse_record` / :func:`parse_records`
    - :func:`deduplicate`
    - :func:`resolve_rules`
    - :func:`enrich_pending`

Records are independent of each other; within a record the descriptor is
normalized before it is matched. The rule table and noise filters are treated
as immutable for the duration of a batch, so sharding a batch across worker
threads needs no locking.
"""

from __future__ import annotations

import hashlib
import json
import math
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from .amounts import AmountLocale, parse_amount
from .dates import TwoDigitYearPolicy, budget_month, parse_date
from .logging_setup import get_logger
from .matching import RuleSet, match_descriptor
from .models import (
    ISSUE_AMOUNT_UNPARSEABLE,
    ISSUE_DATE_UNPARSEABLE,
    AiSuggestion,
    MerchantRule,
    ParsedTransaction,
    RawRecord,
)
from .rule_cache import RuleCache

_SHARD_SIZE_DEFAULT: int = 500

_logger = get_logger("budget_ingest.pipeline")


def compute_fingerprint(*, amount: float, date: str | None, raw_descriptor: str) -> str:
    """Stable SHA-256 over canonical fields used for duplicate detection.

    Fields: amount (2dp string), date (ISO or None), raw descriptor (trimmed,
    whitespace-collapsed, lowercased).
    """

    payload = {
        "amount": f"{amount:.2f}",
        "date": date,
        "descriptor": " ".join(raw_descriptor.split()).lower(),
    }
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _as_raw_record(record: RawRecord | Mapping[str, Any]) -> RawRecord:
    if isinstance(record, RawRecord):
        return record
    return RawRecord.model_validate(record)


def parse_record(
    record: RawRecord | Mapping[str, Any],
    rules: Sequence[MerchantRule] | RuleSet,
    noise_filters: Sequence[object] = (),
    *,
    amount_locale: AmountLocale = "auto",
    two_digit_year: TwoDigitYearPolicy = "fixed-2000",
) -> ParsedTransaction:
    """Convert one raw record into a categorized :class:`ParsedTransaction`.

    Unparseable amounts become ``0.00`` and unparseable dates ``None``; both
    are listed in ``issues`` so the caller can flag the record for manual
    correction. Nothing here raises on bad input text.
    """

    raw = _as_raw_record(record)
    issues: list[str] = []

    amount = parse_amount(raw.raw_amount, amount_locale)
    if amount is None:
        issues.append(ISSUE_AMOUNT_UNPARSEABLE)
        amount = 0.0

    iso_date = parse_date(raw.raw_date, two_digit_year=two_digit_year)
    if iso_date is None:
        issues.append(ISSUE_DATE_UNPARSEABLE)

    descriptor = raw.raw_descriptor.strip()
    result = match_descriptor(descriptor, rules, noise_filters)

    return ParsedTransaction(
        amount=amount,
        date=iso_date,
        clean_descriptor=result.clean_descriptor,
        category=result.category,
        sub_category=result.sub_category,
        confidence=result.confidence,
        matched=result.matched,
        raw_descriptor=descriptor,
        merchant=result.clean_name,
        budget_month=budget_month(iso_date),
        fingerprint=compute_fingerprint(amount=amount, date=iso_date, raw_descriptor=descriptor),
        issues=tuple(issues),
    )


def _paginate(n_total: int, page_size: int) -> Iterator[tuple[int, int]]:
    """Yield half-open ``[base, end)`` shard ranges covering ``n_total`` items."""

    for k in range(math.ceil(n_total / page_size)):
        base = k * page_size
        yield base, min(base + page_size, n_total)


def parse_records(
    records: Iterable[RawRecord | Mapping[str, Any]],
    rules: Sequence[MerchantRule] | RuleSet,
    noise_filters: Sequence[object] = (),
    *,
    amount_locale: AmountLocale = "auto",
    two_digit_year: TwoDigitYearPolicy = "fixed-2000",
    concurrency: int = 1,
    shard_size: int = _SHARD_SIZE_DEFAULT,
) -> list[ParsedTransaction]:
    """Parse a batch of records, returning results in input order.

    With ``concurrency > 1`` the batch is split into shards of ``shard_size``
    records that are parsed on a thread pool; output order is unchanged.
    """

    if concurrency < 1:
        raise ValueError("concurrency must be a positive integer")
    if shard_size < 1:
        raise ValueError("shard_size must be a positive integer")

    seq = list(records)
    # Freeze once so every shard sees the same table.
    rule_set = rules if isinstance(rules, RuleSet) else RuleSet.of(rules)
    filters = tuple(noise_filters)

    def _parse_shard(bounds: tuple[int, int]) -> list[ParsedTransaction]:
        base, end = bounds
        return [
            parse_record(
                rec,
                rule_set,
                filters,
                amount_locale=amount_locale,
                two_digit_year=two_digit_year,
            )
            for rec in seq[base:end]
        ]

    shards = list(_paginate(len(seq), shard_size))
    _logger.info(
        "parse_records:start records=%d shards=%d concurrency=%d rules=%d",
        len(seq),
        len(shards),
        concurrency,
        len(rule_set),
    )

    if concurrency == 1 or len(shards) <= 1:
        parsed = [tx for shard in shards for tx in _parse_shard(shard)]
    else:
        with ThreadPoolExecutor(
            max_workers=min(concurrency, len(shards)), thread_name_prefix="bi-shard"
        ) as pool:
            parsed = [tx for chunk in pool.map(_parse_shard, shards) for tx in chunk]

    pending = sum(1 for tx in parsed if tx.pending)
    _logger.info("parse_records:done parsed=%d pending=%d", len(parsed), pending)
    return parsed


def deduplicate(parsed: Iterable[ParsedTransaction]) -> list[ParsedTransaction]:
    """Drop records whose fingerprint was already seen, keeping first occurrences."""

    seen: set[str] = set()
    out: list[ParsedTransaction] = []
    dropped = 0
    for tx in parsed:
        if tx.fingerprint and tx.fingerprint in seen:
            dropped += 1
            continue
        seen.add(tx.fingerprint)
        out.append(tx)
    if dropped:
        _logger.info("deduplicate:dropped count=%d", dropped)
    return out


def resolve_rules(
    fetch_live: Callable[[], Iterable[MerchantRule | Mapping[str, Any]]],
    cache: RuleCache | None = None,
    *,
    max_age_seconds: float | None = None,
) -> RuleSet:
    """Return the rule table to use for a batch.

    The live source wins when it yields rules; they are then written to
    ``cache``. When the live fetch fails or comes back empty the cached
    snapshot is used unless it is older than ``max_age_seconds``. With neither
    available the result is an empty :class:`RuleSet` and every record will be
    pending.
    """

    live: RuleSet | None = None
    try:
        live = RuleSet.of(fetch_live())
    except Exception:  # noqa: BLE001 - fall back to the cached snapshot
        _logger.warning("resolve_rules:live_fetch_failed", exc_info=True)

    if live is not None and len(live):
        if cache is not None:
            try:
                cache.save(live.rules)
            except OSError:
                _logger.warning("resolve_rules:cache_save_failed", exc_info=True)
        _logger.info("resolve_rules:source=live rules=%d", len(live))
        return live

    if cache is not None:
        snapshot = cache.load()
        if snapshot is not None:
            if snapshot.is_stale(max_age_seconds, now=cache.now()):
                _logger.warning(
                    "resolve_rules:cache_stale age=%.0fs", snapshot.age_seconds(cache.now())
                )
            else:
                _logger.info("resolve_rules:source=cache rules=%d", len(snapshot.rules))
                return RuleSet.of(snapshot.rules)

    _logger.warning("resolve_rules:source=none rules=0")
    return RuleSet()


def enrich_pending(
    parsed: Iterable[ParsedTransaction],
    suggest: Callable[[str], AiSuggestion | None],
) -> list[ParsedTransaction]:
    """Attach advisory suggestions to pending records; matched records pass through.

    ``category`` is never overwritten: the suggestion lives on ``suggestion``
    until a user confirms it.
    """

    out: list[ParsedTransaction] = []
    for tx in parsed:
        if not tx.pending or not tx.clean_descriptor:
            out.append(tx)
            continue
        suggestion = suggest(tx.clean_descriptor)
        out.append(tx if suggestion is None else tx.model_copy(update={"suggestion": suggestion}))
    return out


__all__ = [
    "compute_fingerprint",
    "deduplicate",
    "enrich_pending",
    "parse_record",
    "parse_records",
    "resolve_rules",
]
