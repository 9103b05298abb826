import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from schemaquery.nl_to_sql import (
    ClaudeSQLProvider,
    CostEstimator,
    GeminiSQLProvider,
    GrokSQLProvider,
    MistralSQLProvider,
    OllamaSQLProvider,
    OpenAISQLProvider,
    ResponseParsingError,
    TranslationFailure,
    TranslationSuccess,
)
from schemaquery.nl_to_sql.cost import estimate_tokens
from schemaquery.nl_to_sql.providers import (
    JSON_ONLY_INSTRUCTION,
    extract_entities_from_sql,
    parse_json_response,
    read_confidence,
)

ANSWER = {"sql": "SELECT u.* FROM user u", "explanation": "All users", "confidence": 0.9}


def chat_completion(content, prompt_tokens=1000, completion_tokens=100):
    """An object shaped like an OpenAI chat completion response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create.return_value = chat_completion(json.dumps(ANSWER))
    return client


@pytest.fixture
def http_session():
    """Fixture providing a session whose POST answers with a configurable JSON body."""
    session = MagicMock(spec=requests.Session)
    session.post.return_value = MagicMock()
    return session


class TestOpenAISQLProvider:
    """Tests for the OpenAI compatible providers."""

    def test_generate(self, openai_client, entities):
        provider = OpenAISQLProvider(api_key="key", client=openai_client)
        result = provider.generate("show users", entities)

        assert isinstance(result, TranslationSuccess)
        assert result.sql == "SELECT u.* FROM user u"
        assert result.confidence == 0.9
        assert result.explanation == "All users"
        assert result.provider == "gpt-4-turbo"
        assert result.entities == ["User"]
        assert result.warnings == []
        assert result.cost_info.input_tokens == 1000
        assert result.cost_info.actual == pytest.approx(0.013)

    def test_request(self, openai_client, entities):
        OpenAISQLProvider(api_key="key", client=openai_client, temperature=0.0).generate("show users", entities)
        arguments = openai_client.chat.completions.create.call_args.kwargs

        assert arguments["model"] == "gpt-4-turbo"
        assert arguments["temperature"] == 0.0
        assert arguments["response_format"] == {"type": "json_object"}
        assert arguments["messages"][0]["role"] == "system"
        assert arguments["messages"][1]["content"].startswith('User request:\n"show users"')

    def test_grok_has_no_json_mode(self, openai_client, entities):
        provider = GrokSQLProvider(api_key="key", client=openai_client)
        provider.generate("show users", entities)

        assert "response_format" not in openai_client.chat.completions.create.call_args.kwargs
        assert provider.model_name == "grok-beta"

    def test_default_confidence(self, openai_client, entities):
        openai_client.chat.completions.create.return_value = chat_completion('{"sql": "SELECT 1"}')
        result = MistralSQLProvider(api_key="key", client=openai_client).generate("show users", entities)

        assert result.confidence == 0.8
        assert result.provider == "mistral-large-latest"

    @pytest.mark.parametrize("reported, expected", [(7, 1.0), (-0.5, 0.0), ("0.6", 0.6)])
    def test_reported_confidence_is_clamped(self, openai_client, entities, reported, expected):
        answer = dict(ANSWER, confidence=reported)
        openai_client.chat.completions.create.return_value = chat_completion(json.dumps(answer))
        result = OpenAISQLProvider(api_key="key", client=openai_client).generate("show users", entities)

        assert result.confidence == expected

    def test_not_configured(self, entities):
        result = MistralSQLProvider().generate("show users", entities)

        assert isinstance(result, TranslationFailure)
        assert result.error == "MISTRAL_NOT_CONFIGURED"
        assert result.provider == "mistral-unavailable"
        assert 'Set NL_TO_SQL_AI_PROVIDER="mistral"' in result.suggestions

    def test_cost_exceeded(self, openai_client, entities):
        provider = OpenAISQLProvider(
            api_key="key", client=openai_client, cost_estimator=CostEstimator(max_per_request=0.0)
        )
        result = provider.generate("show users", entities)

        assert result.error == "COST_EXCEEDED"
        assert result.message.startswith("Estimated cost ($")
        openai_client.chat.completions.create.assert_not_called()

    def test_cost_warning(self, openai_client, entities):
        provider = OpenAISQLProvider(
            api_key="key", client=openai_client, cost_estimator=CostEstimator(warn_threshold=0.0)
        )
        result = provider.generate("show users", entities)

        assert result.success
        assert len(result.warnings) == 1

    def test_api_error(self, openai_client, entities):
        openai_client.chat.completions.create.side_effect = RuntimeError("rate limited")
        result = OpenAISQLProvider(api_key="key", client=openai_client).generate("show users", entities)

        assert result.error == "OPENAI_ERROR"
        assert result.message == "OpenAI generation failed: rate limited"

    def test_unparseable_answer(self, openai_client, entities):
        openai_client.chat.completions.create.return_value = chat_completion("I cannot help with that")
        result = OpenAISQLProvider(api_key="key", client=openai_client).generate("show users", entities)

        assert result.error == "OPENAI_ERROR"
        assert "Failed to parse OpenAI response as JSON" in result.message

    def test_estimate_cost(self, openai_client, entities):
        provider = OpenAISQLProvider(api_key="key", client=openai_client)

        default = provider.estimate_cost("abcd")
        assert default.estimated_input_tokens == 2001
        assert default.amount == pytest.approx(0.03501)

        system = provider.prompt_builder.build_prompt("abcd", entities).system
        assert provider.estimate_cost("abcd", entities).estimated_input_tokens == 1 + estimate_tokens(system)


class TestClaudeSQLProvider:
    """Tests for the Anthropic provider."""

    def test_generate(self, entities):
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="text", text=json.dumps(ANSWER))],
            usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        )
        result = ClaudeSQLProvider(api_key="key", client=client).generate("show users", entities)
        arguments = client.messages.create.call_args.kwargs

        assert result.sql == ANSWER["sql"]
        assert result.provider == "claude-3-5-sonnet-20241022"
        assert result.cost_info.total_tokens == 15
        assert arguments["system"].startswith("You are an SQL query generator.")
        assert arguments["messages"][0]["content"].endswith(JSON_ONLY_INSTRUCTION)

    def test_not_configured(self, entities):
        result = ClaudeSQLProvider().generate("show users", entities)

        assert result.error == "ANTHROPIC_NOT_CONFIGURED"
        assert "Set NL_TO_SQL_AI_API_KEY or ANTHROPIC_API_KEY in your .env file" in result.suggestions


class TestGeminiSQLProvider:
    """Tests for the Gemini REST provider."""

    def test_generate(self, http_session, entities):
        http_session.post.return_value.json.return_value = {
            "candidates": [{"content": {"parts": [{"text": json.dumps(ANSWER)}]}}],
            "usageMetadata": {"promptTokenCount": 10, "candidatesTokenCount": 5, "totalTokenCount": 15},
        }
        result = GeminiSQLProvider(api_key="key", session=http_session).generate("show users", entities)
        call = http_session.post.call_args

        assert result.sql == ANSWER["sql"]
        assert result.cost_info.input_tokens == 10
        assert call.args[0] == (
            "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
        )
        assert call.kwargs["params"] == {"key": "key"}
        assert call.kwargs["json"]["generationConfig"]["responseMimeType"] == "application/json"
        assert call.kwargs["timeout"] == 30.0

    def test_http_error(self, http_session, entities):
        http_session.post.return_value.raise_for_status.side_effect = requests.HTTPError("403 Forbidden")
        result = GeminiSQLProvider(api_key="key", session=http_session).generate("show users", entities)

        assert result.error == "GEMINI_ERROR"
        assert result.message == "Google Gemini generation failed: 403 Forbidden"

    def test_not_configured(self, http_session, entities):
        result = GeminiSQLProvider(session=http_session).generate("show users", entities)

        assert result.error == "GEMINI_NOT_CONFIGURED"
        http_session.post.assert_not_called()


class TestOllamaSQLProvider:
    """Tests for the local Ollama provider."""

    def test_generate_without_api_key(self, http_session, entities):
        http_session.post.return_value.json.return_value = {
            "response": json.dumps(ANSWER),
            "prompt_eval_count": 10,
            "eval_count": 5,
        }
        provider = OllamaSQLProvider(session=http_session)
        result = provider.generate("show users", entities)
        call = http_session.post.call_args

        assert provider.is_available()
        assert result.sql == ANSWER["sql"]
        assert result.cost_info.actual == 0.0
        assert call.args[0] == "http://localhost:11434/api/generate"
        assert call.kwargs["json"]["format"] == "json"
        assert call.kwargs["json"]["stream"] is False
        assert call.kwargs["timeout"] == 120.0

    def test_is_free(self):
        assert OllamaSQLProvider(session=MagicMock()).estimate_cost("show users").amount == 0.0


class TestResponseHelpers:
    """Tests for answer parsing and entity extraction."""

    def test_parse_plain_json(self):
        assert parse_json_response(json.dumps(ANSWER)) == ANSWER

    def test_parse_fenced_json(self):
        content = 'Here is the query:\n```json\n{"sql": "SELECT 1"}\n```'
        assert parse_json_response(content) == {"sql": "SELECT 1"}

    @pytest.mark.parametrize("content", ["", "not json", "[1, 2]"])
    def test_parse_failure(self, content):
        with pytest.raises(ResponseParsingError) as error:
            parse_json_response(content, "Grok AI")
        assert error.value.message.startswith("Failed to parse Grok AI response as JSON.")

    def test_read_confidence(self):
        assert read_confidence({"confidence": 0.3}) == 0.3
        assert read_confidence({"confidence": 3}) == 1.0
        assert read_confidence({"confidence": None}) == 0.8
        assert read_confidence({}) == 0.8

    def test_extract_entities(self, entities):
        sql = 'SELECT o.* FROM "order" o INNER JOIN order_item oi ON oi.order_id = o.id'
        assert extract_entities_from_sql(sql, entities) == ["Order", "OrderItem"]
