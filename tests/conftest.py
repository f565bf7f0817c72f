"""Pytest configuration for test isolation.

The rule cache persists snapshots under a default project-relative directory
(``./.cache``). When tests run in the same working tree those files would leak
between tests (a later test could load a snapshot written by an earlier one
and skip the live-rules path), so the cache root is redirected to a unique
temporary directory for each test via an autouse fixture.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Make sure the workspace `packages/` dir is on sys.path so `budget_ingest` is importable
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
# Ensure `packages/` precedes the repo root on sys.path so local packages resolve first.
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]


@pytest.fixture(autouse=True)
def _isolate_cache_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Force a per-test cache root so tests don't share on-disk state.

    ``BUDGET_INGEST_CACHE_DIR`` overrides the default ``./.cache`` location.
    """

    cache_root = tmp_path / "cache"
    cache_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("BUDGET_INGEST_CACHE_DIR", os.fspath(cache_root))
    for name in (
        "BUDGET_INGEST_AMOUNT_LOCALE",
        "BUDGET_INGEST_TWO_DIGIT_YEAR",
        "BUDGET_INGEST_MAX_WORKERS",
        "BUDGET_INGEST_RULE_CACHE_MAX_AGE",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    return cache_root


@pytest.fixture
def scenario_rules():
    from budget_ingest.matching import RuleSet

    from tests.helpers.rules import SCENARIO_RULES

    return RuleSet.of(SCENARIO_RULES)
