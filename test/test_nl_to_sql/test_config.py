import pytest
from pydantic import ValidationError

from schemaquery.nl_to_sql import (
    GeminiSQLProvider,
    NLToSQLSettings,
    OllamaSQLProvider,
    OpenAISQLProvider,
    create_provider,
    create_service,
)


@pytest.fixture
def settings_env(monkeypatch):
    """Fixture clearing the NL_TO_SQL_* environment and returning a setter for it."""
    for name in ("PROVIDER", "API_KEY", "MODEL", "BASE_URL"):
        monkeypatch.delenv(f"NL_TO_SQL_AI_{name}", raising=False)

    def _set(**values):
        for name, value in values.items():
            monkeypatch.setenv(f"NL_TO_SQL_{name.upper()}", str(value))

    return _set


def load_settings():
    return NLToSQLSettings(_env_file=None)


class TestNLToSQLSettings:
    """Tests for reading the settings from the environment."""

    def test_defaults(self, settings_env):
        settings = load_settings()

        assert settings.enabled
        assert settings.strategy == "hybrid"
        assert settings.confidence_threshold == 0.7
        assert settings.ai_provider is None
        assert settings.cost_max_per_request == 0.50

    def test_environment(self, settings_env):
        settings_env(strategy="ai", ai_provider="gemini", ai_api_key="secret", ai_max_tokens=2000)
        settings = load_settings()

        assert settings.strategy == "ai"
        assert settings.ai_provider == "gemini"
        assert settings.ai_api_key == "secret"
        assert settings.ai_max_tokens == 2000

    @pytest.mark.parametrize(
        "name, value",
        [("ai_provider", "watson"), ("ai_max_tokens", 50), ("ai_temperature", 3), ("strategy", "magic")],
    )
    def test_invalid_values(self, settings_env, name, value):
        settings_env(**{name: value})
        with pytest.raises(ValidationError):
            load_settings()


class TestCreateProvider:
    """Tests for building providers from settings."""

    def test_no_provider(self):
        assert create_provider(NLToSQLSettings(_env_file=None, ai_provider=None)) is None

    def test_disabled(self):
        settings = NLToSQLSettings(_env_file=None, enabled=False, ai_provider="ollama")
        assert create_provider(settings) is None

    def test_provider_defaults(self):
        provider = create_provider(NLToSQLSettings(_env_file=None, ai_provider="gemini", ai_api_key="secret"))

        assert isinstance(provider, GeminiSQLProvider)
        assert provider.model == "gemini-2.0-flash"
        assert provider.base_url == "https://generativelanguage.googleapis.com/v1beta"
        assert provider.api_key == "secret"
        assert provider.is_available()

    def test_overrides(self):
        settings = NLToSQLSettings(
            _env_file=None,
            ai_provider="ollama",
            ai_model="qwen2.5-coder",
            ai_base_url="http://gpu-box:11434",
            ai_temperature=0.0,
            cost_warn_threshold=0.01,
        )
        provider = create_provider(settings)

        assert isinstance(provider, OllamaSQLProvider)
        assert provider.model == "qwen2.5-coder"
        assert provider.base_url == "http://gpu-box:11434"
        assert provider.temperature == 0.0
        assert provider.cost_estimator.warn_threshold == 0.01

    def test_openai_client(self):
        provider = create_provider(NLToSQLSettings(_env_file=None, ai_provider="openai", ai_api_key="sk-test"))

        assert isinstance(provider, OpenAISQLProvider)
        assert provider.client is not None
        assert provider.is_available()


class TestCreateService:
    """Tests for wiring the service."""

    def test_local_only(self):
        service = create_service(NLToSQLSettings(_env_file=None, strategy="local", max_depth=2))

        assert service.strategy == "local"
        assert service.local_generator.max_depth == 2
        assert not service.is_ai_available()

    def test_aliases_reach_both_generators(self, entities):
        service = create_service(
            NLToSQLSettings(_env_file=None, ai_provider="ollama"), aliases={"User": ["members"]}
        )

        assert service.ai_model_name == "llama3.1"
        assert service.ai_generator.prompt_builder.analyzer.aliases == {"User": ["members"]}
        assert service.generate("list members", entities).provider == "local"
