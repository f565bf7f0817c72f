"""Optional AI category suggestions for pending transactions.

When no rule matches, a caller may ask the OpenAI Responses API for a category
guess on the clean descriptor. The suggestion is advisory only: it is attached
to the record and never replaces the rule-derived category without user
confirmation.

Any failure (missing ``OPENAI_API_KEY``, network/API errors, malformed output)
is logged and yields ``None``.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping, Sequence
from typing import Any

from openai import OpenAI
from openai.types.responses import ResponseTextConfigParam
from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)
from pydantic import ValidationError

from .logging_setup import get_logger
from .models import AiSuggestion

_MODEL: str = "gpt-5"

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Food",
    "Transport",
    "Housing",
    "Utilities",
    "Shopping",
    "Entertainment",
    "Health",
    "Income",
)

_logger = get_logger("budget_ingest.enrichment")


def _create_client() -> OpenAI:
    return OpenAI()


def build_instructions() -> str:
    return (
        "You are a personal finance assistant. Categorize a single bank "
        "transaction from its merchant descriptor. Pick the closest category "
        "from the allowed list, optionally a short sub-category, a one-line "
        "description of the merchant, and a confidence between 0 and 1."
    )


def build_user_content(descriptor: str, categories: Sequence[str]) -> str:
    lines = ["Allowed categories:"]
    lines.extend(f"- {c}" for c in categories)
    lines.append("")
    lines.append(f"Transaction descriptor: {json.dumps(descriptor, ensure_ascii=False)}")
    return "\n".join(lines)


def build_response_format(categories: Sequence[str]) -> ResponseFormatTextJSONSchemaConfigParam:
    """Strict JSON schema for a single suggestion object."""

    codes = [c for c in dict.fromkeys(str(c).strip() for c in categories) if c]
    if not codes:
        raise ValueError("categories must contain at least one non-blank entry")

    return {
        "type": "json_schema",
        "name": "category_suggestion",
        "schema": {
            "type": "object",
            "properties": {
                "category": {"type": "string", "enum": codes},
                "sub_category": {"type": ["string", "null"]},
                "merchant_description": {"type": ["string", "null"]},
                "confidence": {"type": "number", "minimum": 0, "maximum": 1},
            },
            "required": ["category", "sub_category", "merchant_description", "confidence"],
            "additionalProperties": False,
        },
        "strict": True,
    }


def _extract_text(resp: Any) -> str | None:
    text: str | None = getattr(resp, "output_text", None)
    if text:
        return text
    output = getattr(resp, "output", None)
    if not output:
        return None
    content = getattr(output[0], "content", None)
    if not content:
        return None
    txt = getattr(content[0], "text", None)
    return txt if isinstance(txt, str) else None


def parse_suggestion(
    body: Mapping[str, Any] | str, *, allowed_categories: Sequence[str]
) -> AiSuggestion | None:
    """Validate a decoded (or raw JSON) response body into an :class:`AiSuggestion`.

    Categories outside ``allowed_categories`` are rejected.
    """

    try:
        data = json.loads(body) if isinstance(body, str) else dict(body)
        suggestion = AiSuggestion.model_validate(data)
    except (json.JSONDecodeError, TypeError, ValueError, ValidationError):
        _logger.warning("enrichment:invalid_response body=%r", body)
        return None
    if allowed_categories and suggestion.category not in set(allowed_categories):
        _logger.warning("enrichment:category_not_allowed category=%r", suggestion.category)
        return None
    return suggestion


def suggest_category(
    descriptor: str,
    *,
    categories: Sequence[str] = DEFAULT_CATEGORIES,
    client: OpenAI | None = None,
) -> AiSuggestion | None:
    """Ask the model for a category suggestion for ``descriptor``.

    Returns ``None`` for blank descriptors and on any failure.
    """

    if not descriptor or not descriptor.strip():
        return None
    if client is None and not os.getenv("OPENAI_API_KEY"):
        _logger.warning("enrichment:skipped reason=missing OPENAI_API_KEY")
        return None

    text_cfg = ResponseTextConfigParam(format=build_response_format(categories))
    try:
        api = client if client is not None else _create_client()
        resp = api.responses.create(
            model=_MODEL,
            instructions=build_instructions(),
            input=build_user_content(descriptor, categories),
            text=text_cfg,
        )
    except Exception:  # noqa: BLE001 - enrichment must never break an import
        _logger.warning("enrichment:request_failed descriptor=%r", descriptor, exc_info=True)
        return None

    text = _extract_text(resp)
    if not text:
        _logger.warning("enrichment:empty_response descriptor=%r", descriptor)
        return None
    return parse_suggestion(text, allowed_categories=categories)


__all__ = [
    "DEFAULT_CATEGORIES",
    "build_response_format",
    "parse_suggestion",
    "suggest_category",
]
