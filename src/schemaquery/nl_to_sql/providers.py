"""Remote LLM providers for Natural Language to SQL conversion."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Protocol, Sequence

import requests

from ..schema import SchemaEntity, load_entities
from .cost import CostEstimator, estimate_tokens
from .failures import ResponseParsingError
from .models import CostEstimate, CostInfo, TranslationFailure, TranslationResult, TranslationSuccess
from .prompt_builder import SystemPromptBuilder

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.8
DEFAULT_CONTEXT_TOKENS = 2000
JSON_ONLY_INSTRUCTION = "\n\nYou must respond with valid JSON only, no other text."
_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


class SQLGenerator(Protocol):
    """Protocol for generators that turn a natural language request into SQL."""

    def generate(self, prompt: str, entities: Sequence[Any]) -> TranslationResult:
        """
        Generate SQL from a natural language request.

        :param prompt: The natural language request
        :param entities: The schema entities or their dictionary payloads
        :return: The generated SQL with metadata, or a typed failure
        """
        ...

    def estimate_cost(self, prompt: str, entities: Optional[Sequence[Any]] = None) -> CostEstimate:
        ...

    def is_available(self) -> bool:
        ...

    @property
    def model_name(self) -> str:
        ...


@dataclass
class Completion:
    """Text answer of a remote model and the token usage it reported."""

    content: str
    usage: Dict[str, int] = field(default_factory=dict)


@dataclass
class RemoteSQLProvider:
    """
    Shared generation flow of remote providers: build the prompts, check the cost budget,
    call the model, parse its JSON answer and compute the actual cost. Subclasses only
    implement :meth:`_complete`.
    """

    api_key: Optional[str] = None
    """Credential of the remote API."""

    model: str = ""
    """Model that answers the requests."""

    base_url: str = ""
    """Root URL of the remote API."""

    max_tokens: int = 1000
    """Upper bound of generated tokens."""

    temperature: float = 0.2
    """Sampling temperature."""

    timeout: float = 30.0
    """Seconds to wait for the remote API."""

    prompt_builder: SystemPromptBuilder = field(default_factory=SystemPromptBuilder)
    """Builds the system and user prompts."""

    cost_estimator: CostEstimator = field(default_factory=CostEstimator)
    """Prices requests and enforces the cost budget."""

    provider_key: ClassVar[str] = "remote"
    display_name: ClassVar[str] = "Remote"
    api_key_env: ClassVar[str] = ""

    def generate(self, prompt: str, entities: Sequence[Any]) -> TranslationResult:
        """
        Generate SQL with the remote model.

        :param prompt: The natural language request
        :param entities: The schema entities or their dictionary payloads
        :return: The generated SQL, or a typed failure; never raises
        """
        if not self.is_available():
            return self._not_configured()

        try:
            schema = load_entities(entities)
            bundle = self.prompt_builder.build_prompt(prompt, schema)
            logger.debug(
                "Generated prompt for %s: system=%d chars, user=%d chars",
                self.display_name,
                len(bundle.system),
                len(bundle.user),
            )

            estimate = self.cost_estimator.estimate_cost(
                prompt, self.pricing_model, estimate_tokens(bundle.system)
            )
            if self.cost_estimator.exceeds_maximum(estimate):
                logger.warning(
                    "%s generation blocked: estimated cost %.4f exceeds maximum %.4f",
                    self.display_name,
                    estimate.amount,
                    self.cost_estimator.max_per_request,
                )
                return TranslationFailure(
                    error="COST_EXCEEDED",
                    message=f"Estimated cost (${estimate.amount:.4f}) exceeds maximum allowed",
                    provider=self.model,
                )

            warnings: List[str] = []
            if self.cost_estimator.should_warn(estimate):
                logger.warning(
                    "%s generation cost warning: estimated %.4f for model %s",
                    self.display_name,
                    estimate.amount,
                    self.model,
                )
                warnings.append(
                    f"Estimated cost (${estimate.amount:.4f}) exceeds the warning threshold "
                    f"(${self.cost_estimator.warn_threshold:.2f})"
                )

            completion = self._complete(bundle.system, bundle.user)
            parsed = parse_json_response(completion.content, self.display_name)
            cost_info = self._cost_info(estimate, completion.usage)
            sql = str(parsed.get("sql") or "").strip()
            confidence = read_confidence(parsed)

            logger.info(
                "%s SQL generation successful (model=%s, cost=%.6f, confidence=%.2f)",
                self.display_name,
                self.model,
                cost_info.actual,
                confidence,
            )
            return TranslationSuccess(
                sql=sql,
                confidence=confidence,
                explanation=str(parsed.get("explanation") or ""),
                entities=extract_entities_from_sql(sql, schema),
                provider=self.model,
                cost_info=cost_info,
                warnings=warnings,
            )
        except Exception as error:
            logger.exception("%s SQL generation failed (model=%s)", self.display_name, self.model)
            return TranslationFailure(
                error=f"{self.provider_key.upper()}_ERROR",
                message=f"{self.display_name} generation failed: {error}",
                provider=self.model,
            )

    def estimate_cost(self, prompt: str, entities: Optional[Sequence[Any]] = None) -> CostEstimate:
        """
        Estimate the cost of a request before sending it.

        :param prompt: The natural language request
        :param entities: The schema; without it a typical schema context is assumed
        :return: The estimate
        """
        context_tokens = DEFAULT_CONTEXT_TOKENS
        if entities is not None:
            bundle = self.prompt_builder.build_prompt(prompt, load_entities(entities))
            context_tokens = estimate_tokens(bundle.system)
        return self.cost_estimator.estimate_cost(prompt, self.pricing_model, context_tokens)

    def is_available(self) -> bool:
        return bool(self.api_key)

    @property
    def model_name(self) -> str:
        return self.model

    @property
    def pricing_model(self) -> str:
        """The key used to look the model up in the pricing table."""
        return self.model

    def _complete(self, system_prompt: str, user_prompt: str) -> Completion:
        raise NotImplementedError

    def _cost_info(self, estimate: CostEstimate, usage: Mapping[str, int]) -> CostInfo:
        if not usage:
            return CostInfo(estimated=estimate.amount, actual=estimate.amount)
        return self.cost_estimator.calculate_actual_cost(usage, self.pricing_model)

    def _not_configured(self) -> TranslationFailure:
        key = self.provider_key
        suggestions = [f'Set NL_TO_SQL_AI_PROVIDER="{key}"']
        if self.api_key_env:
            suggestions.append(f"Set NL_TO_SQL_AI_API_KEY or {self.api_key_env} in your .env file")
        return TranslationFailure(
            error=f"{key.upper()}_NOT_CONFIGURED",
            message=f"{self.display_name} is not configured. Please set your API key in the settings.",
            suggestions=suggestions,
            provider=f"{key}-unavailable",
        )


@dataclass
class OpenAISQLProvider(RemoteSQLProvider):
    """Generates SQL with OpenAI chat completions, or any API compatible with them."""

    model: str = "gpt-4-turbo"
    base_url: str = "https://api.openai.com/v1"

    client: Any = None
    """An ``openai.OpenAI`` client; created from the settings when not given."""

    provider_key: ClassVar[str] = "openai"
    display_name: ClassVar[str] = "OpenAI"
    api_key_env: ClassVar[str] = "OPENAI_API_KEY"
    json_mode: ClassVar[bool] = True

    def __post_init__(self):
        if self.client is None and self.api_key:
            try:
                from openai import OpenAI
            except ImportError:
                raise ImportError(
                    "OpenAI package not installed. Install it with: pip install openai"
                )
            self.client = OpenAI(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)

    def is_available(self) -> bool:
        return bool(self.api_key) and self.client is not None

    def _complete(self, system_prompt: str, user_prompt: str) -> Completion:
        arguments = dict(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if self.json_mode:
            arguments["response_format"] = {"type": "json_object"}

        response = self.client.chat.completions.create(**arguments)
        usage = getattr(response, "usage", None)
        return Completion(
            content=response.choices[0].message.content or "",
            usage=_usage(
                usage,
                prompt_tokens="prompt_tokens",
                completion_tokens="completion_tokens",
                total_tokens="total_tokens",
            ),
        )


@dataclass
class MistralSQLProvider(OpenAISQLProvider):
    """Generates SQL with Mistral AI through its OpenAI compatible endpoint."""

    model: str = "mistral-large-latest"
    base_url: str = "https://api.mistral.ai/v1"

    provider_key: ClassVar[str] = "mistral"
    display_name: ClassVar[str] = "Mistral AI"
    api_key_env: ClassVar[str] = "MISTRAL_API_KEY"


@dataclass
class GrokSQLProvider(OpenAISQLProvider):
    """Generates SQL with xAI Grok through its OpenAI compatible endpoint."""

    model: str = "grok-beta"
    base_url: str = "https://api.x.ai/v1"

    provider_key: ClassVar[str] = "grok"
    display_name: ClassVar[str] = "Grok AI"
    api_key_env: ClassVar[str] = "GROK_API_KEY"
    json_mode: ClassVar[bool] = False


@dataclass
class ClaudeSQLProvider(RemoteSQLProvider):
    """Generates SQL using Anthropic's Claude models."""

    model: str = "claude-3-5-sonnet-20241022"
    base_url: str = "https://api.anthropic.com"

    client: Any = None
    """An ``anthropic.Anthropic`` client; created from the settings when not given."""

    provider_key: ClassVar[str] = "anthropic"
    display_name: ClassVar[str] = "Anthropic Claude"
    api_key_env: ClassVar[str] = "ANTHROPIC_API_KEY"

    def __post_init__(self):
        if self.client is None and self.api_key:
            try:
                from anthropic import Anthropic
            except ImportError:
                raise ImportError(
                    "Anthropic package not installed. Install it with: pip install anthropic"
                )
            self.client = Anthropic(api_key=self.api_key, base_url=self.base_url, timeout=self.timeout)

    def is_available(self) -> bool:
        return bool(self.api_key) and self.client is not None

    def _complete(self, system_prompt: str, user_prompt: str) -> Completion:
        # Claude has no JSON response mode, so the instruction goes into the request
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt + JSON_ONLY_INSTRUCTION}],
        )
        content = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        return Completion(
            content=content,
            usage=_usage(
                getattr(response, "usage", None),
                prompt_tokens="input_tokens",
                completion_tokens="output_tokens",
            ),
        )


@dataclass
class GeminiSQLProvider(RemoteSQLProvider):
    """Generates SQL with Google Gemini through the ``generateContent`` REST endpoint."""

    model: str = "gemini-2.0-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    session: requests.Session = field(default_factory=requests.Session)
    """HTTP session used for the API calls."""

    provider_key: ClassVar[str] = "gemini"
    display_name: ClassVar[str] = "Google Gemini"
    api_key_env: ClassVar[str] = "GEMINI_API_KEY"

    def _complete(self, system_prompt: str, user_prompt: str) -> Completion:
        response = self.session.post(
            f"{self.base_url}/models/{self.model}:generateContent",
            params={"key": self.api_key},
            json={
                "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
                "systemInstruction": {"parts": [{"text": system_prompt + JSON_ONLY_INSTRUCTION}]},
                "generationConfig": {
                    "temperature": self.temperature,
                    "maxOutputTokens": self.max_tokens,
                    "responseMimeType": "application/json",
                },
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()

        content = ""
        candidates = data.get("candidates") or []
        if candidates:
            parts = candidates[0].get("content", {}).get("parts") or []
            if parts:
                content = parts[0].get("text", "")

        metadata = data.get("usageMetadata") or {}
        usage = {}
        if metadata:
            usage = {
                "prompt_tokens": metadata.get("promptTokenCount", 0),
                "completion_tokens": metadata.get("candidatesTokenCount", 0),
                "total_tokens": metadata.get("totalTokenCount", 0),
            }
        return Completion(content=content, usage=usage)


@dataclass
class OllamaSQLProvider(RemoteSQLProvider):
    """Generates SQL using local Ollama models."""

    model: str = "llama3.1"
    base_url: str = "http://localhost:11434"
    timeout: float = 120.0

    session: requests.Session = field(default_factory=requests.Session)
    """HTTP session used for the API calls."""

    provider_key: ClassVar[str] = "ollama"
    display_name: ClassVar[str] = "Ollama"

    def is_available(self) -> bool:
        return bool(self.base_url) and bool(self.model)

    @property
    def pricing_model(self) -> str:
        return "ollama"

    def _complete(self, system_prompt: str, user_prompt: str) -> Completion:
        response = self.session.post(
            f"{self.base_url}/api/generate",
            json={
                "model": self.model,
                "system": system_prompt,
                "prompt": user_prompt + JSON_ONLY_INSTRUCTION,
                "format": "json",
                "stream": False,
                "options": {"temperature": self.temperature, "num_predict": self.max_tokens},
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        usage = {}
        if "prompt_eval_count" in data or "eval_count" in data:
            usage = {
                "prompt_tokens": data.get("prompt_eval_count", 0),
                "completion_tokens": data.get("eval_count", 0),
            }
        return Completion(content=data.get("response", ""), usage=usage)


def read_confidence(parsed: Mapping[str, Any]) -> float:
    """
    The confidence a model reported, kept within [0, 1].

    :param parsed: The decoded answer of the model
    :return: The reported confidence, or the default when the model did not report one
    """
    confidence = parsed.get("confidence")
    if confidence is None:
        return DEFAULT_CONFIDENCE
    return min(max(float(confidence), 0.0), 1.0)


def parse_json_response(content: str, provider_name: str = "AI") -> Dict[str, Any]:
    """
    Decode the JSON object a model answered with, also when it wrapped it in a fenced
    code block.

    :param content: The raw answer
    :param provider_name: Used in the error message
    :return: The decoded object
    :raises ResponseParsingError: If no JSON object could be decoded
    """
    for candidate in _json_candidates(content or ""):
        try:
            decoded = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(decoded, dict):
            return decoded

    logger.error("Failed to parse %s response (%d characters)", provider_name, len(content or ""))
    raise ResponseParsingError(
        f"Failed to parse {provider_name} response as JSON. Response: {(content or '')[:500]}"
    )


def extract_entities_from_sql(sql: str, entities: Sequence[SchemaEntity]) -> List[str]:
    """
    Names of the entities whose table appears in a SQL text.

    :param sql: The generated SQL
    :param entities: The schema entities
    :return: Entity names in schema order
    """
    lowered = sql.lower()
    return [
        entity.name
        for entity in entities
        if (entity.table_name or entity.name).lower() in lowered
    ]


def _json_candidates(content: str):
    yield content
    match = _FENCED_JSON.search(content)
    if match is not None:
        yield match.group(1)


def _usage(usage: Any, **names: str) -> Dict[str, int]:
    """Read token counts from an SDK usage object, renaming them to the cost estimator keys."""
    if usage is None:
        return {}
    counts = {}
    for key, attribute in names.items():
        value = getattr(usage, attribute, None)
        if isinstance(value, int):
            counts[key] = value
    return counts
