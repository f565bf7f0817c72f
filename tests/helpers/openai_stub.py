"""Test helpers to stub the OpenAI Responses client used by enrichment.py.

The stub extracts the quoted descriptor from the user-content payload and
returns whatever the test's ``decide`` callable produces for it, serialized the
way the Responses API exposes ``output_text``.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

_MARKER = "Transaction descriptor: "


def extract_descriptor(user_content: str) -> str:
    for line in user_content.splitlines():
        if line.startswith(_MARKER):
            return json.loads(line[len(_MARKER) :])
    raise AssertionError("enrichment: user content missing the descriptor line")


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape used by ``enrichment.py``.

    Parameters
    ----------
    decide:
        Receives the descriptor and returns the response body as a mapping, a
        raw string (to simulate malformed output) or raises to simulate an API
        failure.
    calls_out:
        Appended with each call's kwargs for lightweight assertions.
    """

    def __init__(
        self,
        decide: Callable[[str], dict[str, Any] | str],
        calls_out: list[dict[str, Any]] | None = None,
    ) -> None:
        self._decide = decide
        self._calls = calls_out if calls_out is not None else []

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                body = self._outer._decide(extract_descriptor(kwargs["input"]))

                class _Resp:
                    output_text: str

                resp = _Resp()
                resp.output_text = body if isinstance(body, str) else json.dumps(body)
                return resp

        self.responses = _Responses(self)

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls
