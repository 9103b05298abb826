"""Main service class for Natural Language to SQL conversion."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from ..schema import load_entities
from .engine import LocalRuleBasedGenerator
from .models import CostEstimate, TranslationFailure, TranslationResult
from .providers import SQLGenerator
from .validators import SQLQueryValidator

logger = logging.getLogger(__name__)

LOCAL = "local"
AI = "ai"
HYBRID = "hybrid"
STRATEGIES = (LOCAL, AI, HYBRID)
DEFAULT_CONFIDENCE_THRESHOLD = 0.7
SUPPORTED_PROVIDERS = ("openai", "anthropic", "mistral", "grok", "gemini", "ollama")


@dataclass
class NaturalLanguageToSQLService:
    """
    Converts natural language to SQL with the local rule-based engine, a remote AI generator,
    or both.

    With the ``hybrid`` strategy the local engine answers first; the AI generator is only
    asked when the local answer failed or is less confident than ``confidence_threshold``,
    and the more confident of the two successful answers wins.
    """

    local_generator: LocalRuleBasedGenerator = field(default_factory=LocalRuleBasedGenerator)
    """Rule-based engine, always available."""

    ai_generator: Optional[SQLGenerator] = None
    """Optional remote generator."""

    validator: SQLQueryValidator = field(default_factory=SQLQueryValidator)
    """Checks that AI generated SQL is a single SELECT statement."""

    strategy: str = HYBRID
    """Default strategy of :meth:`generate`."""

    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    """Local answers at least this confident are returned without asking the AI generator."""

    def __post_init__(self):
        self.strategy = _check_strategy(self.strategy)

    def generate(self, prompt: str, entities: Sequence[Any], strategy: Optional[str] = None) -> TranslationResult:
        """
        Convert a natural language request into SQL.

        :param prompt: The natural language request
        :param entities: The schema entities or their dictionary payloads
        :param strategy: Overrides the default strategy for this call
        :return: The generated SQL with metadata, or a typed failure
        """
        strategy = _check_strategy(strategy or self.strategy)
        try:
            schema = load_entities(entities)
        except Exception as error:
            logger.exception("Could not load the schema for %r", prompt)
            return TranslationFailure(
                error="PARSER_ERROR",
                message=f"Error parsing schema: {error}",
                suggestions=["Check the entity descriptions passed to the service"],
            )
        logger.info(
            "NL to SQL generation started (strategy=%s, prompt_length=%d, entity_count=%d)",
            strategy,
            len(prompt or ""),
            len(schema),
        )

        if strategy == LOCAL:
            return self.local_generator.generate(prompt, schema)
        if strategy == AI:
            return self._generate_with_ai(prompt, schema)

        local_result = self.local_generator.generate(prompt, schema)
        if local_result.success and local_result.confidence >= self.confidence_threshold:
            return local_result
        if not self.is_ai_available():
            logger.debug("No AI generator available, keeping the local result")
            return local_result

        logger.debug(
            "Local result not confident enough (success=%s, confidence=%.2f), asking %s",
            local_result.success,
            local_result.confidence,
            self.ai_model_name,
        )
        ai_result = self._generate_with_ai(prompt, schema)
        if ai_result.success and (not local_result.success or ai_result.confidence > local_result.confidence):
            return ai_result
        return local_result

    def estimate_cost(
        self,
        prompt: str,
        entities: Optional[Sequence[Any]] = None,
        strategy: Optional[str] = None,
    ) -> Optional[CostEstimate]:
        """
        Estimate what a request would cost.

        :param prompt: The natural language request
        :param entities: The schema, for a precise estimate of the prompt size
        :param strategy: Overrides the default strategy
        :return: The estimate, or None when the AI generator would be used but is not available
        """
        strategy = _check_strategy(strategy or self.strategy)
        if strategy == LOCAL:
            return self.local_generator.estimate_cost(prompt, entities)
        if not self.is_ai_available():
            return None
        return self.ai_generator.estimate_cost(prompt, entities)

    def is_ai_available(self) -> bool:
        return self.ai_generator is not None and self.ai_generator.is_available()

    @property
    def ai_model_name(self) -> Optional[str]:
        if not self.is_ai_available():
            return None
        return self.ai_generator.model_name

    def _generate_with_ai(self, prompt: str, entities: Sequence[Any]) -> TranslationResult:
        if not self.is_ai_available():
            return ai_not_configured()

        logger.debug("Using AI generator %s", self.ai_generator.model_name)
        result = self.ai_generator.generate(prompt, entities)
        if not result.success:
            return result

        validation = self.validator.validate(result.sql)
        if not validation.is_valid:
            logger.warning("Rejected SQL generated by %s: %s", result.provider, validation.error_message)
            return TranslationFailure(
                error="INVALID_SQL",
                message=f"Generated SQL is not a valid SELECT query: {validation.error_message}",
                suggestions=["Rephrase the request", "Try the local strategy"],
                provider=result.provider,
            )
        return result


def ai_not_configured() -> TranslationFailure:
    return TranslationFailure(
        error="AI_NOT_CONFIGURED",
        message="Natural Language to SQL with AI requires an AI provider to be configured.",
        suggestions=[
            "Set NL_TO_SQL_AI_PROVIDER, e.g. NL_TO_SQL_AI_PROVIDER=openai",
            "Set the corresponding API key in NL_TO_SQL_AI_API_KEY",
            f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}",
        ],
    )


def _check_strategy(strategy: str) -> str:
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy {strategy!r}, expected one of {', '.join(STRATEGIES)}")
    return strategy
