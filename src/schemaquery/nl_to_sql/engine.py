"""Local, rule-based generator: runs the parsing pipeline without any network access."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from ..schema import SchemaEntity, load_entities
from .condition_parser import parse_conditions
from .failures import EntityNotFoundError, NLToSQLError, NoPathFoundError
from .lexicon import build_lexicon
from .models import (
    CostEstimate,
    Path,
    QueryPlan,
    TranslationFailure,
    TranslationResult,
    TranslationSuccess,
)
from .path_finder import DEFAULT_MAX_DEPTH, PathFinder, format_path
from .select_parser import parse_select
from .sql_builder import build_sql, select_join_paths, shape_right_hand
from .tokenizer import tokenize

logger = logging.getLogger(__name__)

LOCAL_MODEL_NAME = "local-rule-based"
BASE_CONFIDENCE = 0.7
CONFIDENCE_STEP = 0.1
MAX_CONFIDENCE = 0.95
ENTITY_SUGGESTION_COUNT = 5

EntityPayload = Union[SchemaEntity, Mapping[str, Any]]


@dataclass
class LocalRuleBasedGenerator:
    """
    Translates a request into SQL with the tokenizer, the parsers, the path finder and the SQL
    builder. Every call rebuilds the lexicon and the relation graph from the given entities.
    """

    aliases: Mapping[str, Iterable[str]] = field(default_factory=dict)
    """User-defined entity aliases keyed by entity id or name."""

    max_depth: int = DEFAULT_MAX_DEPTH
    """Maximum number of joins between the main entity and any other entity."""

    def generate(self, prompt: str, entities: Sequence[EntityPayload]) -> TranslationResult:
        """
        Generate SQL for a natural language request.

        :param prompt: The request, e.g. "show users with email containing gmail"
        :param entities: The schema entities or their dictionary payloads
        :return: The generated SQL, or a typed failure
        """
        try:
            schema = load_entities(entities)
            return self._translate(prompt, schema)
        except NLToSQLError as error:
            logger.debug("Local translation failed with %s: %s", error.error_code, error.message)
            return TranslationFailure(
                error=error.error_code,
                message=error.message,
                suggestions=list(error.suggestions),
                provider="local",
            )
        except Exception as error:
            logger.exception("Unexpected error while parsing %r", prompt)
            return TranslationFailure(
                error="PARSER_ERROR",
                message=f"Error parsing query: {error}",
                provider="local",
            )

    def estimate_cost(self, prompt: str = "", entities: Optional[Sequence[EntityPayload]] = None) -> CostEstimate:
        """Local generation is free."""
        return CostEstimate(amount=0.0, model=LOCAL_MODEL_NAME)

    def is_available(self) -> bool:
        return True

    @property
    def model_name(self) -> str:
        return LOCAL_MODEL_NAME

    def _translate(self, prompt: str, entities: List[SchemaEntity]) -> TranslationSuccess:
        tokens = tokenize(prompt).tokens
        lexicon = build_lexicon(entities, self.aliases)

        select = parse_select(tokens, entities, lexicon)
        if select.main_entity is None:
            raise EntityNotFoundError(
                "Could not identify the main entity in your query. "
                "Try mentioning an entity name explicitly.",
                [entity.name for entity in entities[:ENTITY_SUGGESTION_COUNT]],
            )

        clause = parse_conditions(tokens, entities, lexicon, select.main_entity)
        plan = QueryPlan(
            main_entity=select.main_entity,
            select_fields=select.select_fields,
            conditions=clause.conditions,
            order_by=clause.order_by,
            group_by=clause.group_by,
            limit=clause.limit,
        )
        logger.debug("Query plan: %s", plan)

        paths = self._find_join_paths(plan, entities)
        sql = build_sql(plan, paths)
        joined = select_join_paths(plan, paths)

        return TranslationSuccess(
            sql=sql,
            confidence=compute_confidence(plan),
            explanation=explain(plan),
            entities=[entity.name for entity in plan.required_entities()],
            provider="local",
            paths=[format_path(path) for path in joined],
        )

    def _find_join_paths(self, plan: QueryPlan, entities: List[SchemaEntity]) -> List[Path]:
        finder = PathFinder(entities, max_depth=self.max_depth)
        paths: List[Path] = []
        for entity in plan.required_entities()[1:]:
            found = finder.find_paths(plan.main_entity, entity)
            if not found:
                raise NoPathFoundError(
                    f"No relation path found from {plan.main_entity.name} to {entity.name}.",
                    [
                        f"Check that {entity.name} is related to {plan.main_entity.name}",
                        f"Paths longer than {self.max_depth} relations are not searched",
                    ],
                    source=plan.main_entity.name,
                    target=entity.name,
                )
            paths.extend(found)
        return paths


def compute_confidence(plan: QueryPlan) -> float:
    """
    Heuristic confidence: a base score raised when the request had conditions and when it
    named explicit columns.
    """
    confidence = BASE_CONFIDENCE
    if plan.conditions:
        confidence += CONFIDENCE_STEP
    if plan.select_fields and plan.select_fields[0].field != "*":
        confidence += CONFIDENCE_STEP
    return round(min(confidence, MAX_CONFIDENCE), 2)


def explain(plan: QueryPlan) -> str:
    """
    One-sentence description of a plan.

    :param plan: The query plan
    :return: e.g. "This query retrieves User.email where User.active = TRUE, limited to 5 results."
    """
    selected = ", ".join(
        f"{ref.entity.name}.{ref.field}" for ref in plan.select_fields
    )
    conditions = " and ".join(
        f"{predicate.entity.name}.{predicate.field} {predicate.operator} "
        f"{shape_right_hand(predicate)}".replace("\n", " ")
        for predicate in plan.predicates
    )
    text = f"This query retrieves {selected or plan.main_entity.name + ' records'}"
    if conditions:
        text += f" where {conditions}"
    if plan.limit:
        text += f", limited to {plan.limit} results"
    return text + "."
