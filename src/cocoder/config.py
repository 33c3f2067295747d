"""Configuration management for cocoder."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ApiKeyNotConfiguredError, ConfigurationError, ModelNotConfiguredError

ENV_FILE = ".env"


class ApiKeyAuth(BaseModel):
    kind: Literal["apikey"] = "apikey"
    api_key: str = Field(..., min_length=1)


class TokenAuth(BaseModel):
    """Bearer token issued by the cloud identity provider."""

    kind: Literal["token"] = "token"
    token: str = Field(..., min_length=1)


class OpenAIProviderConfig(BaseModel):
    kind: Literal["openai"] = "openai"
    api_key: str = Field(..., min_length=1)
    base_url: str | None = None


class AzureProviderConfig(BaseModel):
    kind: Literal["azure"] = "azure"
    endpoint: str = Field(..., min_length=1)
    deployment: str = Field(..., min_length=1)
    api_version: str = "2024-02-01"
    auth: Annotated[ApiKeyAuth | TokenAuth, Field(discriminator="kind")]


ProviderConfig = Annotated[OpenAIProviderConfig | AzureProviderConfig, Field(discriminator="kind")]

_PROVIDER_ADAPTER: TypeAdapter[OpenAIProviderConfig | AzureProviderConfig] = TypeAdapter(ProviderConfig)


class ModelConfig(BaseModel):
    """Sampling parameters sent with every completion request."""

    model: str = Field(..., min_length=1)
    temperature: float = 0
    seed: int | None = 0
    top_p: float = 0.95
    max_tokens: int | None = 4096


class Settings(BaseSettings):
    """Application settings, read from COCODER_* environment variables and .env."""

    model_config = SettingsConfigDict(
        env_prefix="COCODER_",
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Model provider
    model: str | None = Field(None, description="Model or Azure deployment name, e.g. 'gpt-4o'")
    api_provider: Literal["openai", "azure"] = Field("openai", description="Model provider")
    api_url: str | None = Field(None, description="API base URL, required by Azure")
    api_auth: Literal["apikey", "token"] = Field("apikey", description="Authentication method")
    api_key: str | None = Field(None, description="API key")
    api_token: str | None = Field(None, description="Bearer token when api_auth is 'token'")
    api_azure_version: str = Field("2024-02-01", description="Azure API version")

    # Budgets
    max_prompts: int = Field(20, description="Max prompts sent to the model per task")
    max_tokens_total: int = Field(6000, description="Max tokens sent and received per task")
    max_tokens_per_request: int = Field(128000, description="Max tokens in a single request")
    max_tokens_files: int = Field(5000, description="Max tokens spent on workspace files")
    max_file_size: int = Field(10000, description="Files larger than this are truncated")
    max_file_requests: int = Field(10, description="Max files served on model request")
    max_request_rounds: int = Field(3, description="Max rounds of file requests")
    preview_size: int = Field(0, description="Max characters of each preview file")
    files_ignore: list[str] = Field(
        default_factory=lambda: ["node_modules"], description="Glob patterns of files never sent to the model"
    )

    # Output
    output: Path = Field(Path(".out"), description="Output directory for generated files")
    log_level: str = Field("info", description="Log level: trace, debug, info or off")

    def completion_model(self) -> ModelConfig:
        if not self.model:
            raise ModelNotConfiguredError('"model" is required')
        return ModelConfig(model=self.model)

    def provider_config(self) -> OpenAIProviderConfig | AzureProviderConfig:
        """Build the provider variant selected by api_provider and api_auth."""
        if self.api_provider == "azure":
            if not self.api_url:
                raise ConfigurationError('"api-url" is required when provider is "azure"')
            if not self.model:
                raise ModelNotConfiguredError('"model" is required when provider is "azure"')
            payload: dict[str, object] = {
                "kind": "azure",
                "endpoint": self.api_url,
                "deployment": self.model,
                "api_version": self.api_azure_version,
                "auth": self._auth_payload(),
            }
        else:
            if self.api_auth != "apikey":
                raise ConfigurationError('provider "openai" only supports "apikey" auth')
            if not self.api_key:
                raise ApiKeyNotConfiguredError('"api-key" is required when provider is "openai"')
            payload = {"kind": "openai", "api_key": self.api_key, "base_url": self.api_url}

        try:
            return _PROVIDER_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid provider configuration: {exc}") from exc

    def _auth_payload(self) -> dict[str, object]:
        if self.api_auth == "token":
            # --api-key carries the bearer token when no dedicated token is set
            token = self.api_token or self.api_key
            if not token:
                raise ApiKeyNotConfiguredError('"api-token" or "api-key" is required when auth is "token"')
            return {"kind": "token", "token": token}
        if not self.api_key:
            raise ApiKeyNotConfiguredError('"api-key" is required when auth is "apikey"')
        return {"kind": "apikey", "api_key": self.api_key}


def load_settings(workspace: Path | None = None, **overrides: object) -> Settings:
    """Load settings, reading the .env file of the workspace when given.

    Overrides with a None value are ignored so unset CLI options keep the
    configured defaults.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    env_file = (workspace / ENV_FILE) if workspace is not None else ENV_FILE
    return Settings(_env_file=env_file, **values)  # type: ignore[call-arg]
