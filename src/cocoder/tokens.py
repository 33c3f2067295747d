"""Token estimation helpers."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache

import tiktoken

DEFAULT_ENCODING = "o200k_base"

type TokenCounter = Callable[[str], int]


@lru_cache(maxsize=8)
def _encoding_for(model: str | None) -> tiktoken.Encoding:
    if model:
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            pass
    return tiktoken.get_encoding(DEFAULT_ENCODING)


def count_tokens(text: str, model: str | None = None) -> int:
    """Count tokens of text with the tokenizer of the given model family."""
    if not text:
        return 0
    return len(_encoding_for(model).encode(text, disallowed_special=()))


def token_counter_for(model: str | None = None) -> TokenCounter:
    """Return a counter bound to one model's tokenizer."""

    def _count(text: str) -> int:
        return count_tokens(text, model)

    return _count
