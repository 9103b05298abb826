"""Natural Language to SQL conversion service."""

from .models import (
    CostEstimate,
    CostInfo,
    Path,
    QueryPlan,
    SQLExample,
    TranslationFailure,
    TranslationResult,
    TranslationSuccess,
    ValidationResult,
)
from .failures import (
    EntityNotFoundError,
    NLToSQLError,
    NoPathFoundError,
    ResponseParsingError,
)
from .tokenizer import tokenize
from .lexicon import Lexicon, build_lexicon
from .path_finder import PathFinder, find_paths, format_path
from .sql_builder import build_sql
from .engine import LocalRuleBasedGenerator
from .cost import CostEstimator
from .formatters import SchemaContextFormatter
from .analyzer import QueryAnalyzer
from .prompt_builder import SystemPromptBuilder
from .validators import SQLQueryValidator
from .providers import (
    SQLGenerator,
    RemoteSQLProvider,
    OpenAISQLProvider,
    MistralSQLProvider,
    GrokSQLProvider,
    ClaudeSQLProvider,
    GeminiSQLProvider,
    OllamaSQLProvider,
)
from .service import NaturalLanguageToSQLService
from .config import NLToSQLSettings, create_provider, create_service

__all__ = [
    # Core models
    "CostEstimate",
    "CostInfo",
    "Path",
    "QueryPlan",
    "SQLExample",
    "TranslationFailure",
    "TranslationResult",
    "TranslationSuccess",
    "ValidationResult",
    # Errors
    "EntityNotFoundError",
    "NLToSQLError",
    "NoPathFoundError",
    "ResponseParsingError",
    # Local pipeline
    "tokenize",
    "Lexicon",
    "build_lexicon",
    "PathFinder",
    "find_paths",
    "format_path",
    "build_sql",
    "LocalRuleBasedGenerator",
    # Prompting and cost
    "CostEstimator",
    "SchemaContextFormatter",
    "QueryAnalyzer",
    "SystemPromptBuilder",
    # Validators
    "SQLQueryValidator",
    # Providers
    "SQLGenerator",
    "RemoteSQLProvider",
    "OpenAISQLProvider",
    "MistralSQLProvider",
    "GrokSQLProvider",
    "ClaudeSQLProvider",
    "GeminiSQLProvider",
    "OllamaSQLProvider",
    # Services
    "NaturalLanguageToSQLService",
    "NLToSQLSettings",
    "create_provider",
    "create_service",
]
