from pathlib import Path

import pytest

from cocoder.config import (
    ApiKeyAuth,
    AzureProviderConfig,
    OpenAIProviderConfig,
    Settings,
    TokenAuth,
    load_settings,
)
from cocoder.errors import ApiKeyNotConfiguredError, ConfigurationError, ModelNotConfiguredError


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "COCODER_MODEL",
        "COCODER_API_PROVIDER",
        "COCODER_API_KEY",
        "COCODER_API_URL",
        "COCODER_API_AUTH",
        "COCODER_API_TOKEN",
        "COCODER_MAX_PROMPTS",
        "COCODER_FILES_IGNORE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path)

    assert settings.model is None
    assert settings.api_provider == "openai"
    assert settings.max_prompts == 20
    assert settings.max_tokens_total == 6000
    assert settings.max_file_requests == 10
    assert settings.output == Path(".out")
    assert settings.log_level == "info"
    assert settings.files_ignore == ["node_modules"]


def test_environment_and_env_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("COCODER_MODEL=gpt-4o\nCOCODER_MAX_PROMPTS=7\n", encoding="utf-8")
    monkeypatch.setenv("COCODER_API_KEY", "sk-env")

    settings = load_settings(tmp_path)

    assert settings.model == "gpt-4o"
    assert settings.max_prompts == 7
    assert settings.api_key == "sk-env"


def test_none_overrides_keep_configured_values(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("COCODER_MODEL", "gpt-4o")

    settings = load_settings(tmp_path, model=None, max_prompts=3)

    assert settings.model == "gpt-4o"
    assert settings.max_prompts == 3


def test_openai_provider_config() -> None:
    settings = Settings(model="gpt-4o", api_key="sk-test", api_url="http://localhost:8080/v1")

    config = settings.provider_config()

    assert config == OpenAIProviderConfig(api_key="sk-test", base_url="http://localhost:8080/v1")


def test_openai_requires_api_key() -> None:
    with pytest.raises(ApiKeyNotConfiguredError):
        Settings(model="gpt-4o").provider_config()


def test_openai_rejects_token_auth() -> None:
    with pytest.raises(ConfigurationError, match="apikey"):
        Settings(model="gpt-4o", api_auth="token", api_token="t").provider_config()


def test_azure_provider_with_api_key() -> None:
    settings = Settings(
        model="my-deployment",
        api_provider="azure",
        api_url="https://example.openai.azure.com",
        api_key="azure-key",
    )

    config = settings.provider_config()

    assert isinstance(config, AzureProviderConfig)
    assert config.deployment == "my-deployment"
    assert config.api_version == "2024-02-01"
    assert config.auth == ApiKeyAuth(api_key="azure-key")


def test_azure_provider_with_token() -> None:
    settings = Settings(
        model="my-deployment",
        api_provider="azure",
        api_url="https://example.openai.azure.com",
        api_auth="token",
        api_token="bearer",
    )

    config = settings.provider_config()

    assert isinstance(config, AzureProviderConfig)
    assert config.auth == TokenAuth(token="bearer")


def test_azure_requires_url_model_and_credentials() -> None:
    with pytest.raises(ConfigurationError, match="api-url"):
        Settings(model="d", api_provider="azure", api_key="k").provider_config()
    with pytest.raises(ModelNotConfiguredError):
        Settings(api_provider="azure", api_url="https://x", api_key="k").provider_config()
    with pytest.raises(ApiKeyNotConfiguredError):
        Settings(model="d", api_provider="azure", api_url="https://x", api_auth="token").provider_config()


def test_completion_model_requires_model() -> None:
    with pytest.raises(ModelNotConfiguredError):
        Settings().completion_model()

    model = Settings(model="gpt-4o").completion_model()
    assert model.model == "gpt-4o"
    assert model.temperature == 0
    assert model.top_p == 0.95
    assert model.seed == 0
    assert model.max_tokens == 4096


def test_token_auth_accepts_the_api_key_value() -> None:
    settings = Settings(
        model="my-deployment",
        api_provider="azure",
        api_url="https://example.openai.azure.com",
        api_auth="token",
        api_key="bearer-from-key",
    )

    config = settings.provider_config()

    assert isinstance(config, AzureProviderConfig)
    assert config.auth == TokenAuth(token="bearer-from-key")
