"""Budgeted completion session over one conversation."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from enum import StrEnum
from pathlib import Path
from typing import Literal, Protocol, get_args

from loguru import logger

from cocoder.errors import BudgetExceededError, ConfigurationError, ProviderError
from cocoder.tokens import TokenCounter, count_tokens

DEFAULT_SYSTEM_PROMPT = "You are an AI assistant that helps people find information."
FINISH_REASON_LENGTH = "length"

type Role = Literal["system", "user", "assistant"]
ROLES: frozenset[str] = frozenset(get_args(Role.__value__))


@dataclass(frozen=True)
class Turn:
    role: Role
    content: str


@dataclass(frozen=True)
class Completion:
    """One provider reply."""

    text: str | None
    finish_reason: str | None
    input_tokens: int | None
    output_tokens: int | None


class CompletionProvider(Protocol):
    def create_completion(self, turns: Sequence[Turn]) -> Completion: ...


@dataclass(frozen=True)
class SessionOptions:
    max_prompts: int = 5
    max_tokens_per_request: int = 4000
    max_tokens_total: int = 12000
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


@dataclass(frozen=True)
class SessionStats:
    prompt_counter: int = 0
    session_input_tokens: int = 0
    session_output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.session_input_tokens + self.session_output_tokens


@dataclass(frozen=True)
class PromptReply:
    """Fully assembled response of one prompt."""

    response: str
    conversation: list[Turn]
    session_input_tokens: int
    session_output_tokens: int


class SessionState(StrEnum):
    IDLE = "idle"
    SENDING = "sending"
    CONTINUING = "continuing"


class CompletionSession:
    """Owns one conversation and enforces its prompt and token budgets.

    Replies cut short by the provider's length limit are resumed by sending
    the conversation again, without a new user turn, until the provider
    reports a normal stop. Every provider call counts as one prompt.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        *,
        options: SessionOptions | None = None,
        token_counter: TokenCounter | None = None,
    ) -> None:
        self._provider = provider
        self._options = options or SessionOptions()
        self._count_tokens = token_counter or count_tokens
        self._conversation: list[Turn] = [Turn("system", self._options.system_prompt)]
        self._prompt_counter = 0
        self._input_tokens = 0
        self._output_tokens = 0
        self._state = SessionState.IDLE

    @property
    def conversation(self) -> list[Turn]:
        return list(self._conversation)

    @property
    def state(self) -> SessionState:
        return self._state

    def stats(self) -> SessionStats:
        return SessionStats(
            prompt_counter=self._prompt_counter,
            session_input_tokens=self._input_tokens,
            session_output_tokens=self._output_tokens,
        )

    def send_prompt(self, prompt: str) -> PromptReply:
        fragments: list[str] = []
        self._state = SessionState.SENDING
        try:
            while True:
                self._check_prompt_budget()
                if not fragments:
                    self._conversation.append(Turn("user", prompt))
                else:
                    self._state = SessionState.CONTINUING
                    logger.info("session.continue fragments={}", len(fragments))
                self._check_token_budget()

                completion = self._provider.create_completion(list(self._conversation))
                text = self._consume(completion)
                fragments.append(text)
                if completion.finish_reason != FINISH_REASON_LENGTH:
                    break
        finally:
            self._state = SessionState.IDLE

        return PromptReply(
            response="".join(fragments),
            conversation=self.conversation,
            session_input_tokens=self._input_tokens,
            session_output_tokens=self._output_tokens,
        )

    def save_conversation(self, path: Path | str) -> None:
        """Overwrite path with the whole conversation as a JSON array."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        data = [asdict(turn) for turn in self._conversation]
        target.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    def load_conversation(self, path: Path | str) -> None:
        """Replace the conversation with the one stored at path."""
        source = Path(path)
        if not source.is_file():
            raise ConfigurationError(f'Conversation file "{source}" does not exist')
        try:
            payload = json.loads(source.read_text(encoding="utf-8"))
        except (OSError, UnicodeError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f'Conversation file "{source}" is not readable: {exc!s}') from exc
        self._conversation = _turns_from_payload(payload, source)
        logger.debug("session.conversation.loaded path={} turns={}", source, len(self._conversation))

    def _consume(self, completion: Completion) -> str:
        if completion.input_tokens is None or completion.output_tokens is None:
            raise ProviderError("Completion usage accounting is missing")
        self._input_tokens += completion.input_tokens
        self._output_tokens += completion.output_tokens
        if not completion.text:
            raise ProviderError("Response message content is empty")
        self._conversation.append(Turn("assistant", completion.text))
        return completion.text

    def _check_prompt_budget(self) -> None:
        self._prompt_counter += 1
        limit = self._options.max_prompts
        if self._prompt_counter > limit:
            raise BudgetExceededError(
                f"Too many prompts in this session ({self._prompt_counter}/{limit})",
                budget="prompts",
                current=self._prompt_counter,
                limit=limit,
            )

    def _check_token_budget(self) -> None:
        request_tokens = self._count_tokens(json.dumps([turn.content for turn in self._conversation], ensure_ascii=False))
        per_request = self._options.max_tokens_per_request
        if request_tokens > per_request:
            raise BudgetExceededError(
                f"Exceeded max tokens per request ({request_tokens}/{per_request})",
                budget="tokens_per_request",
                current=request_tokens,
                limit=per_request,
            )

        session_tokens = self._input_tokens + self._output_tokens + request_tokens
        total = self._options.max_tokens_total
        if session_tokens > total:
            raise BudgetExceededError(
                f"Exceeded max total tokens in this session ({session_tokens}/{total})",
                budget="tokens_total",
                current=session_tokens,
                limit=total,
            )


def _turns_from_payload(payload: object, source: Path) -> list[Turn]:
    if not isinstance(payload, list) or not payload:
        raise ConfigurationError(f'Conversation file "{source}" must hold a non-empty JSON array')
    turns: list[Turn] = []
    for item in payload:
        if not isinstance(item, dict):
            raise ConfigurationError(f'Conversation file "{source}" has an invalid turn: {item!r}')
        role = item.get("role")
        content = item.get("content")
        if role not in ROLES or not isinstance(content, str):
            raise ConfigurationError(f'Conversation file "{source}" has an invalid turn: {item!r}')
        turns.append(Turn(role, content))
    return turns
