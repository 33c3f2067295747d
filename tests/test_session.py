import json
from pathlib import Path

import pytest
from conftest import FakeProvider, completion

from cocoder.errors import BudgetExceededError, ConfigurationError, ProviderError
from cocoder.session import (
    DEFAULT_SYSTEM_PROMPT,
    CompletionSession,
    SessionOptions,
    SessionState,
    Turn,
)


def _count_chars(text: str) -> int:
    return len(text)


def test_new_session_starts_with_system_turn() -> None:
    session = CompletionSession(FakeProvider([]))

    assert session.conversation == [Turn("system", DEFAULT_SYSTEM_PROMPT)]
    assert session.state == SessionState.IDLE
    assert session.stats().prompt_counter == 0


def test_send_prompt_appends_turns_and_accumulates_usage() -> None:
    provider = FakeProvider([completion("first", input_tokens=7, output_tokens=3), completion("second")])
    session = CompletionSession(provider)

    reply = session.send_prompt("one")
    reply = session.send_prompt("two")

    assert reply.response == "second"
    assert [turn.role for turn in reply.conversation] == ["system", "user", "assistant", "user", "assistant"]
    assert reply.session_input_tokens == 17
    assert reply.session_output_tokens == 8
    stats = session.stats()
    assert stats.prompt_counter == 2
    assert stats.total_tokens == 25


def test_length_limited_replies_are_continued_without_new_user_turn() -> None:
    provider = FakeProvider([
        completion("Hel", finish_reason="length"),
        completion("lo, hu", finish_reason="length"),
        completion("man!!", finish_reason="stop"),
    ])
    session = CompletionSession(provider)

    reply = session.send_prompt("Say hello")

    assert reply.response == "Hello, human!!"
    assert len(provider.calls) == 3
    assert [turn.role for turn in provider.calls[2]] == ["system", "user", "assistant", "assistant"]
    assert [turn.role for turn in reply.conversation].count("user") == 1
    assert session.stats().prompt_counter == 3
    assert session.state == SessionState.IDLE


def test_prompt_budget_fails_on_the_next_call() -> None:
    provider = FakeProvider(["a", "b", "c"])
    session = CompletionSession(provider, options=SessionOptions(max_prompts=2))

    session.send_prompt("1")
    session.send_prompt("2")
    with pytest.raises(BudgetExceededError, match="Too many prompts") as exc_info:
        session.send_prompt("3")

    assert exc_info.value.budget == "prompts"
    assert exc_info.value.limit == 2
    assert len(provider.calls) == 2


def test_continuations_count_against_prompt_budget() -> None:
    provider = FakeProvider([completion("a", finish_reason="length"), completion("b")])
    session = CompletionSession(provider, options=SessionOptions(max_prompts=1))

    with pytest.raises(BudgetExceededError, match="Too many prompts"):
        session.send_prompt("go")

    assert len(provider.calls) == 1


def test_per_request_limit_fails_before_provider_call() -> None:
    provider = FakeProvider(["never"])
    session = CompletionSession(
        provider,
        options=SessionOptions(max_tokens_per_request=100),
        token_counter=_count_chars,
    )

    with pytest.raises(BudgetExceededError, match="Exceeded max tokens per request") as exc_info:
        session.send_prompt("x" * 200)

    assert exc_info.value.budget == "tokens_per_request"
    assert provider.calls == []


def test_total_limit_includes_consumed_tokens() -> None:
    provider = FakeProvider([completion("ok", input_tokens=900, output_tokens=50), completion("never")])
    session = CompletionSession(
        provider,
        options=SessionOptions(max_tokens_total=1000),
        token_counter=_count_chars,
    )

    session.send_prompt("small")
    with pytest.raises(BudgetExceededError, match="Exceeded max total tokens") as exc_info:
        session.send_prompt("another")

    assert exc_info.value.budget == "tokens_total"
    assert exc_info.value.current > 1000
    assert len(provider.calls) == 1


def test_missing_usage_is_a_provider_error() -> None:
    session = CompletionSession(FakeProvider([completion("text", input_tokens=None)]))

    with pytest.raises(ProviderError, match="usage"):
        session.send_prompt("go")


def test_empty_body_is_a_provider_error() -> None:
    session = CompletionSession(FakeProvider([completion("")]))

    with pytest.raises(ProviderError, match="empty"):
        session.send_prompt("go")

    assert session.stats().session_input_tokens == 10
    assert session.state == SessionState.IDLE


def test_conversation_save_and_load(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "conversation.json"
    session = CompletionSession(FakeProvider(["answer"]))
    session.send_prompt("question")

    session.save_conversation(target)

    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload == [
        {"role": "system", "content": DEFAULT_SYSTEM_PROMPT},
        {"role": "user", "content": "question"},
        {"role": "assistant", "content": "answer"},
    ]

    restored = CompletionSession(FakeProvider(["next"]))
    restored.load_conversation(target)
    reply = restored.send_prompt("follow up")
    assert [turn.content for turn in reply.conversation][1:] == ["question", "answer", "follow up", "next"]


def test_custom_system_prompt() -> None:
    session = CompletionSession(FakeProvider([]), options=SessionOptions(system_prompt="Be terse."))

    assert session.conversation[0] == Turn("system", "Be terse.")


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[]",
        '{"role": "user"}',
        '[{"role": "robot", "content": "x"}]',
        '[{"role": "user", "content": 3}]',
    ],
)
def test_malformed_conversation_file_is_rejected(tmp_path: Path, content: str) -> None:
    source = tmp_path / "conversation.json"
    source.write_text(content, encoding="utf-8")
    session = CompletionSession(FakeProvider([]))

    with pytest.raises(ConfigurationError):
        session.load_conversation(source)

    assert session.conversation == [Turn("system", DEFAULT_SYSTEM_PROMPT)]


def test_missing_conversation_file_is_rejected(tmp_path: Path) -> None:
    session = CompletionSession(FakeProvider([]))

    with pytest.raises(ConfigurationError, match="does not exist"):
        session.load_conversation(tmp_path / "missing.json")
