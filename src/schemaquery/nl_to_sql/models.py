"""Core data models for Natural Language to SQL conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ..schema import Relation, SchemaEntity


@dataclass(frozen=True)
class TokenizedText:
    """The raw input and its flat token sequence."""

    raw: str
    tokens: List[str]


@dataclass(frozen=True)
class FieldRef:
    """A field of a specific entity; ``*`` selects every column."""

    entity: SchemaEntity
    field: str

    @property
    def key(self) -> Tuple[str, str]:
        return self.entity.entity_id, self.field.lower()


class LikeAnchor(Enum):
    """Where the wildcard goes when a LIKE value carries none."""

    CONTAINS = "contains"
    STARTS = "starts"
    ENDS = "ends"


@dataclass(frozen=True)
class Predicate:
    """A single ``<entity>.<field> <operator> <value>`` condition."""

    entity: SchemaEntity
    field: str
    operator: str
    value: str
    anchor: Optional[LikeAnchor] = None


@dataclass(frozen=True)
class Connector:
    """An AND/OR marker between two predicates."""

    connector: str


Condition = Union[Predicate, Connector]


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: str = "ASC"
    entity: Optional[SchemaEntity] = None


@dataclass(frozen=True)
class SelectClause:
    main_entity: Optional[SchemaEntity]
    select_fields: List[FieldRef] = field(default_factory=list)


@dataclass(frozen=True)
class ConditionClause:
    conditions: List[Condition] = field(default_factory=list)
    order_by: Optional[OrderBy] = None
    group_by: List[FieldRef] = field(default_factory=list)
    limit: Optional[int] = None


@dataclass(frozen=True)
class QueryPlan:
    """The resolved query, built once per request and consumed by the SQL builder."""

    main_entity: SchemaEntity
    select_fields: List[FieldRef] = field(default_factory=list)
    conditions: List[Condition] = field(default_factory=list)
    order_by: Optional[OrderBy] = None
    group_by: List[FieldRef] = field(default_factory=list)
    limit: Optional[int] = None

    @property
    def predicates(self) -> List[Predicate]:
        return [condition for condition in self.conditions if isinstance(condition, Predicate)]

    def required_entities(self) -> List[SchemaEntity]:
        """
        Entities the query touches, main entity first, in order of first mention.

        :return: Unique entities needed in FROM/JOIN
        """
        candidates = [self.main_entity]
        candidates.extend(select_field.entity for select_field in self.select_fields)
        candidates.extend(predicate.entity for predicate in self.predicates)
        if self.order_by is not None and self.order_by.entity is not None:
            candidates.append(self.order_by.entity)
        candidates.extend(group_field.entity for group_field in self.group_by)

        required: Dict[str, SchemaEntity] = {}
        for entity in candidates:
            required.setdefault(entity.entity_id, entity)
        return list(required.values())


@dataclass(frozen=True)
class Path:
    """A chain of entities connected by relation edges."""

    entities: Tuple[SchemaEntity, ...]
    relations: Tuple[Relation, ...] = ()

    @property
    def length(self) -> int:
        return len(self.relations)

    @property
    def source(self) -> SchemaEntity:
        return self.entities[0]

    @property
    def target(self) -> SchemaEntity:
        return self.entities[-1]

    @property
    def key(self) -> Tuple[str, ...]:
        return tuple(entity.name for entity in self.entities)


@dataclass(frozen=True)
class CostEstimate:
    """Represents an estimated cost for an AI generation request."""

    amount: float
    currency: str = "USD"
    model: str = ""
    estimated_input_tokens: int = 0
    estimated_output_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "currency": self.currency,
            "model": self.model,
            "estimated_input_tokens": self.estimated_input_tokens,
            "estimated_output_tokens": self.estimated_output_tokens,
        }


@dataclass(frozen=True)
class CostInfo:
    """Estimated and actual cost of an AI generation."""

    estimated: float
    actual: float
    currency: str = "USD"
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "estimated": self.estimated,
            "actual": self.actual,
            "currency": self.currency,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class TranslationSuccess:
    """A generated SQL query and its metadata."""

    sql: str
    confidence: float
    explanation: str
    entities: List[str]
    provider: str = "local"
    paths: List[str] = field(default_factory=list)
    cost_info: Optional[CostInfo] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": True,
            "sql": self.sql,
            "confidence": self.confidence,
            "explanation": self.explanation,
            "entities": list(self.entities),
            "paths": list(self.paths),
            "provider": self.provider,
        }
        if self.cost_info is not None:
            result["cost"] = self.cost_info.to_dict()
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result


@dataclass(frozen=True)
class TranslationFailure:
    """A typed failure; never carries SQL."""

    error: str
    message: str
    suggestions: List[str] = field(default_factory=list)
    provider: str = "local"

    @property
    def success(self) -> bool:
        return False

    @property
    def confidence(self) -> float:
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "sql": "",
            "confidence": 0.0,
            "explanation": "",
            "entities": [],
            "paths": [],
            "provider": self.provider,
            "error": self.error,
            "message": self.message,
            "suggestions": list(self.suggestions),
        }


TranslationResult = Union[TranslationSuccess, TranslationFailure]


@dataclass(frozen=True)
class PromptBundle:
    """System and user prompts for a remote generator plus the schema slice they describe."""

    system: str
    user: str
    entities: List[SchemaEntity] = field(default_factory=list)


@dataclass
class SQLExample:
    """Represents a single SQL example with description."""

    description: str
    natural_language: str
    sql: str
    category: str


@dataclass
class ValidationResult:
    """Result of SQL query validation."""

    is_valid: bool
    error_message: str = ""
    syntax_errors: list[str] = field(default_factory=list)
