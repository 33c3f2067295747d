"""OpenAI integration helpers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import openai
from loguru import logger
from openai import AzureOpenAI, OpenAI

from cocoder.config import AzureProviderConfig, ModelConfig, OpenAIProviderConfig, TokenAuth
from cocoder.errors import ProviderError
from cocoder.session import Completion, Turn


def build_client(config: OpenAIProviderConfig | AzureProviderConfig) -> OpenAI:
    """Build the SDK client for one provider variant."""

    if isinstance(config, AzureProviderConfig):
        if isinstance(config.auth, TokenAuth):
            return AzureOpenAI(
                azure_endpoint=config.endpoint,
                azure_deployment=config.deployment,
                api_version=config.api_version,
                azure_ad_token=config.auth.token,
            )
        return AzureOpenAI(
            azure_endpoint=config.endpoint,
            azure_deployment=config.deployment,
            api_version=config.api_version,
            api_key=config.auth.api_key,
        )
    return OpenAI(api_key=config.api_key, base_url=config.base_url)


class OpenAIChatProvider:
    """Completion provider backed by the chat completions API."""

    def __init__(self, client: Any, model_config: ModelConfig) -> None:
        self._client = client
        self._model_config = model_config

    @property
    def model(self) -> str:
        return self._model_config.model

    def create_completion(self, turns: Sequence[Turn]) -> Completion:
        request: dict[str, Any] = {
            "model": self._model_config.model,
            "messages": [{"role": turn.role, "content": turn.content} for turn in turns],
            "temperature": self._model_config.temperature,
            "top_p": self._model_config.top_p,
            "stream": False,
        }
        if self._model_config.seed is not None:
            request["seed"] = self._model_config.seed
        if self._model_config.max_tokens is not None:
            request["max_tokens"] = self._model_config.max_tokens

        logger.debug("openai.request model={} messages={}", self._model_config.model, len(turns))
        try:
            response = self._client.chat.completions.create(**request)
        except openai.APIError as exc:
            raise ProviderError(f"Model provider call failed: {exc!s}") from exc

        if not response.choices:
            raise ProviderError("Completion has no choices")
        choice = response.choices[0]
        usage = response.usage
        return Completion(
            text=choice.message.content,
            finish_reason=choice.finish_reason,
            input_tokens=usage.prompt_tokens if usage is not None else None,
            output_tokens=usage.completion_tokens if usage is not None else None,
        )
