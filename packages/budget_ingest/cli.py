# ruff: noqa: I001
"""CLI for the ``budget_ingest`` package.

Command handlers (``cmd_parse``, ``cmd_cache_rules``) return a process exit
code and write errors to stderr; the Typer app below wraps them. A local
``.env`` is loaded with ``python-dotenv`` before any command runs, so
``BUDGET_INGEST_*`` settings and ``OPENAI_API_KEY`` can live there.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging, get_logger

_logger = get_logger("budget_ingest.cli")


# ---- Small module-level helpers used by CLI commands -------------------------


def _read_json_list(path: Path) -> list[Any]:
    """Read a JSON array from ``path``; anything else raises ``ValueError``."""

    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array, got {type(data).__name__}")
    return data


# Bank exports are UTF-8 (often with a BOM) or Windows-1252.
_EXPORT_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "cp1252")


def _read_export(path: Path) -> str:
    """Decode the export at ``path``, trying each of ``_EXPORT_ENCODINGS`` in turn.

    Raises ``UnicodeDecodeError`` from the last encoding when none fits.
    """

    data = path.read_bytes()
    for encoding in _EXPORT_ENCODINGS[:-1]:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            _logger.info("cli:decode_retry path=%s failed_encoding=%s", path, encoding)
    return data.decode(_EXPORT_ENCODINGS[-1])


def _rule_cache(cache_dir: Path | None):
    from .rule_cache import JsonFileStorage, RuleCache

    return RuleCache(JsonFileStorage(cache_dir))


def cmd_parse(
    csv_path: str,
    rules_path: str | None = None,
    *,
    filters_path: str | None = None,
    amount_locale: str | None = None,
    two_digit_year: str | None = None,
    dedupe: bool = True,
    enrich: bool = False,
) -> int:
    """Parse and categorize a CSV export, printing one JSON object per line.

    Behavior
    --------
    - Settings come from the environment (see :mod:`budget_ingest.settings`);
      ``amount_locale`` / ``two_digit_year`` override them when given.
    - The export is decoded as UTF-8, falling back to Windows-1252.
    - Rules are read from ``rules_path`` and written to the local rule cache.
      When the file is missing or unreadable the cached snapshot is used.
    - With ``dedupe`` later records sharing a fingerprint are dropped.
    - With ``enrich`` pending records get an AI category suggestion.

    Returns ``0`` on success and ``1`` on any input or configuration error.
    """

    import csv
    import os

    from .enrichment import suggest_category
    from .ingest import load_records
    from .pipeline import deduplicate, enrich_pending, parse_records, resolve_rules
    from .settings import IngestSettings

    env = dict(os.environ)
    if amount_locale:
        env["BUDGET_INGEST_AMOUNT_LOCALE"] = amount_locale
    if two_digit_year:
        env["BUDGET_INGEST_TWO_DIGIT_YEAR"] = two_digit_year
    try:
        settings = IngestSettings.from_env(env)
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        records = load_records(_read_export(Path(csv_path)))
    except FileNotFoundError:
        print(f"Error: File not found: {csv_path}", file=sys.stderr)
        return 1
    except PermissionError:
        print(f"Error: Permission denied: {csv_path}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: Failed to read {csv_path}: {e}", file=sys.stderr)
        return 1
    except UnicodeDecodeError as e:
        print(f"Error: Could not decode {csv_path}: {e}", file=sys.stderr)
        return 1
    except csv.Error as e:
        print(f"Error: Failed to parse CSV: {e}", file=sys.stderr)
        return 1

    noise_filters: list[Any] = []
    if filters_path:
        try:
            noise_filters = _read_json_list(Path(filters_path))
        except (OSError, ValueError) as e:
            print(f"Error: failed to read noise filters: {e}", file=sys.stderr)
            return 1

    def _fetch_live() -> list[Any]:
        if rules_path is None:
            return []
        return _read_json_list(Path(rules_path))

    rules = resolve_rules(
        _fetch_live,
        _rule_cache(settings.cache_dir),
        max_age_seconds=settings.rule_cache_max_age,
    )

    parsed = parse_records(
        records,
        rules,
        noise_filters,
        amount_locale=settings.amount_locale,
        two_digit_year=settings.two_digit_year,
        concurrency=settings.max_workers,
    )
    if dedupe:
        parsed = deduplicate(parsed)
    if enrich:
        parsed = enrich_pending(parsed, suggest_category)

    for tx in parsed:
        print(tx.model_dump_json())
    return 0


def cmd_cache_rules(rules_path: str) -> int:
    """Validate the rules in ``rules_path`` and store them as the cached snapshot."""

    from pydantic import ValidationError

    from .matching import RuleSet
    from .settings import IngestSettings

    try:
        settings = IngestSettings.from_env()
        rules = RuleSet.of(_read_json_list(Path(rules_path)))
    except FileNotFoundError:
        print(f"Error: File not found: {rules_path}", file=sys.stderr)
        return 1
    except (ValidationError, ValueError) as e:
        print(f"Error: invalid rules: {e}", file=sys.stderr)
        return 1

    try:
        snapshot = _rule_cache(settings.cache_dir).save(rules.rules)
    except OSError as e:
        print(f"Error: failed to write rule cache: {e}", file=sys.stderr)
        return 1

    print(f"cached {len(snapshot.rules)} rules")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Parse and categorize bank transaction exports with merchant rules. "
        "Loads settings and OPENAI_API_KEY from a local .env before running."
    ),
)

# Module-level option object to satisfy ruff B008 (no calls in parameter
# defaults).
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,
    "--csv-path",
    help="Path to a CSV or pasted-text export to parse",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)


@app.command("parse")
def parse_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    *,
    rules: Path | None = typer.Option(
        None,
        "--rules",
        help="JSON array of merchant rules (falls back to the cached snapshot).",
        dir_okay=False,
    ),
    filters: Path | None = typer.Option(
        None, "--filters", help="JSON array of noise-filter strings.", dir_okay=False
    ),
    amount_locale: str | None = typer.Option(
        None, help="Amount separator convention: auto, us or eu."
    ),
    two_digit_year: str | None = typer.Option(
        None, help="Two-digit year policy: fixed-2000 or pivot-1950."
    ),
    dedupe: bool = typer.Option(True, help="Drop records with a repeated fingerprint."),
    enrich: bool = typer.Option(
        False, help="Ask OpenAI for category suggestions on unmatched records."
    ),
) -> None:
    """Parse a CSV export and print one JSON transaction per line."""

    code = cmd_parse(
        str(csv_path),
        str(rules) if rules is not None else None,
        filters_path=str(filters) if filters is not None else None,
        amount_locale=amount_locale,
        two_digit_year=two_digit_year,
        dedupe=dedupe,
        enrich=enrich,
    )
    if code:
        raise typer.Exit(code)


@app.command("cache-rules")
def cache_rules_cmd(
    rules: Path = typer.Option(
        ..., "--rules", help="JSON array of merchant rules.", dir_okay=False
    ),
) -> None:
    """Store a rule table in the local rule cache."""

    code = cmd_cache_rules(str(rules))
    if code:
        raise typer.Exit(code)


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    # override=False keeps variables already set in the environment
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
