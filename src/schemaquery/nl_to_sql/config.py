"""Settings and wiring of the Natural Language to SQL service."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Literal, Mapping, Optional, Type

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .analyzer import QueryAnalyzer
from .cost import CostEstimator
from .engine import LocalRuleBasedGenerator
from .path_finder import DEFAULT_MAX_DEPTH
from .prompt_builder import SystemPromptBuilder
from .providers import (
    ClaudeSQLProvider,
    GeminiSQLProvider,
    GrokSQLProvider,
    MistralSQLProvider,
    OllamaSQLProvider,
    OpenAISQLProvider,
    RemoteSQLProvider,
)
from .service import DEFAULT_CONFIDENCE_THRESHOLD, NaturalLanguageToSQLService

logger = logging.getLogger(__name__)

PROVIDERS: Dict[str, Type[RemoteSQLProvider]] = {
    "openai": OpenAISQLProvider,
    "anthropic": ClaudeSQLProvider,
    "mistral": MistralSQLProvider,
    "grok": GrokSQLProvider,
    "gemini": GeminiSQLProvider,
    "ollama": OllamaSQLProvider,
}
"""Provider name -> provider class; each class carries its default model and base URL."""


class NLToSQLSettings(BaseSettings):
    """
    Configuration read from ``NL_TO_SQL_*`` environment variables or a ``.env`` file,
    e.g. ``NL_TO_SQL_AI_PROVIDER=openai`` and ``NL_TO_SQL_AI_API_KEY=...``.
    """

    enabled: bool = True
    strategy: Literal["local", "ai", "hybrid"] = "hybrid"
    confidence_threshold: float = Field(default=DEFAULT_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1)

    ai_provider: Optional[Literal["openai", "anthropic", "mistral", "grok", "gemini", "ollama"]] = None
    ai_api_key: Optional[str] = None
    ai_model: Optional[str] = None
    """Defaults to the provider's model."""
    ai_base_url: Optional[str] = None
    """Defaults to the provider's public endpoint."""
    ai_max_tokens: int = Field(default=1000, ge=100, le=4000)
    ai_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    ai_timeout: float = Field(default=30.0, gt=0)

    cost_warn_threshold: float = Field(default=0.10, ge=0.0)
    cost_max_per_request: float = Field(default=0.50, ge=0.0)

    model_config = SettingsConfigDict(env_prefix="NL_TO_SQL_", env_file=".env", extra="ignore")


def create_provider(settings: NLToSQLSettings) -> Optional[RemoteSQLProvider]:
    """
    Instantiate the configured AI provider.

    :param settings: The settings
    :return: The provider, or None when no provider is configured or the feature is disabled
    """
    if not settings.enabled or settings.ai_provider is None:
        return None

    provider_class = PROVIDERS[settings.ai_provider]
    options = dict(
        api_key=settings.ai_api_key,
        max_tokens=settings.ai_max_tokens,
        temperature=settings.ai_temperature,
        timeout=settings.ai_timeout,
        cost_estimator=CostEstimator(
            warn_threshold=settings.cost_warn_threshold,
            max_per_request=settings.cost_max_per_request,
        ),
    )
    if settings.ai_model:
        options["model"] = settings.ai_model
    if settings.ai_base_url:
        options["base_url"] = settings.ai_base_url

    provider = provider_class(**options)
    logger.debug("Configured %s provider with model %s", settings.ai_provider, provider.model)
    return provider


def create_service(
    settings: Optional[NLToSQLSettings] = None,
    aliases: Optional[Mapping[str, Iterable[str]]] = None,
) -> NaturalLanguageToSQLService:
    """
    Build a service from settings.

    :param settings: The settings; read from the environment when not given
    :param aliases: User-defined entity aliases keyed by entity id or name
    :return: The configured service
    """
    settings = settings or NLToSQLSettings()
    aliases = dict(aliases or {})
    provider = create_provider(settings)
    if provider is not None:
        provider.prompt_builder = SystemPromptBuilder(analyzer=QueryAnalyzer(aliases=aliases))
    return NaturalLanguageToSQLService(
        local_generator=LocalRuleBasedGenerator(aliases=aliases, max_depth=settings.max_depth),
        ai_generator=provider,
        strategy=settings.strategy,
        confidence_threshold=settings.confidence_threshold,
    )
