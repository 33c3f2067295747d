from __future__ import annotations

from collections.abc import Sequence

import pytest

from cocoder.protocol import Footer, Header, PromptResponse, encode_prompt_response, make_content
from cocoder.session import Completion, Turn


def estimate_tokens(text: str, model: str | None = None) -> int:
    _ = model
    return len(text) // 4


@pytest.fixture(autouse=True)
def _offline_token_counting(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("cocoder.session.count_tokens", estimate_tokens)
    monkeypatch.setattr("cocoder.workspace.collector.count_tokens", estimate_tokens)


def completion(
    text: str | None,
    *,
    finish_reason: str | None = "stop",
    input_tokens: int | None = 10,
    output_tokens: int | None = 5,
) -> Completion:
    return Completion(text=text, finish_reason=finish_reason, input_tokens=input_tokens, output_tokens=output_tokens)


class FakeProvider:
    def __init__(self, replies: Sequence[Completion | str]) -> None:
        self.replies = [completion(reply) if isinstance(reply, str) else reply for reply in replies]
        self.calls: list[list[Turn]] = []

    def create_completion(self, turns: Sequence[Turn]) -> Completion:
        self.calls.append(list(turns))
        if not self.replies:
            raise AssertionError("unexpected provider call")
        return self.replies.pop(0)


def response_text(
    outcome: str,
    files: Sequence[tuple[str, str]],
    *,
    has_more: bool = False,
) -> str:
    contents = [make_content(name, body, relevance=7, motivation="test") for name, body in files]
    return encode_prompt_response(
        PromptResponse(
            header=Header(outcome=outcome, count=len(contents)),
            contents=contents,
            footer=Footer(has_more_to_generate=has_more),
        )
    )
