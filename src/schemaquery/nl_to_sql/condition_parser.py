"""
Condition parsing: WHERE predicates joined by AND/OR, plus ORDER BY, GROUP BY and LIMIT.
"""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..schema import SchemaEntity
from ..schema.field_types import BOOLEAN, NUMBER
from .lexicon import OPERATOR_PHRASES, Lexicon, OperatorPhrase
from .models import (
    Condition,
    ConditionClause,
    Connector,
    FieldRef,
    LikeAnchor,
    OrderBy,
    Predicate,
)
from .resolver import resolve_field

logger = logging.getLogger(__name__)

COPULAS = frozenset({"is", "are", "was", "were"})
ORDER_MARKERS = frozenset({"order by", "sort by"})
GROUP_MARKER = "group by"
LIMIT_MARKER = "limit"
CLAUSE_MARKERS = ORDER_MARKERS | {GROUP_MARKER, LIMIT_MARKER}
DESCENDING = frozenset({"desc", "descending"})
ASCENDING = frozenset({"asc", "ascending"})

TRUE_LITERALS = frozenset({"true", "1", "yes", "y"})
FALSE_LITERALS = frozenset({"false", "0", "no", "n"})
_NUMERIC_LITERAL = re.compile(r"^[-+]?\d+(\.\d+)?$")


@dataclass(frozen=True)
class OperatorSpan:
    """Where an operator was found inside a condition group."""

    operator: OperatorPhrase
    start: int
    length: int


def parse_conditions(
    tokens: Sequence[str],
    entities: Sequence[SchemaEntity],
    lexicon: Lexicon,
    main_entity: Optional[SchemaEntity],
) -> ConditionClause:
    """
    Parse the conditions introduced by where/with/when/whose/for/having and the trailing
    ORDER BY, GROUP BY and LIMIT modifiers.

    :param tokens: The request tokens
    :param entities: The schema entities, in priority order
    :param lexicon: The lexicon built for ``entities``
    :param main_entity: Bias for unqualified field names
    :return: The parsed conditions and modifiers
    """
    tokens = list(tokens)
    connector_index = next(
        (index for index, token in enumerate(tokens) if token in lexicon.connectors), None
    )
    search_from = connector_index + 1 if connector_index is not None else 0
    stop = next(
        (
            index
            for index in range(search_from, len(tokens))
            if tokens[index] in CLAUSE_MARKERS
        ),
        len(tokens),
    )
    where_tokens = tokens[search_from:stop] if connector_index is not None else []

    conditions: List[Condition] = []
    for part in split_by_and_or(where_tokens):
        if isinstance(part, Connector):
            conditions.append(part)
            continue
        predicate = parse_atomic_condition(part, entities, lexicon, main_entity)
        if predicate is None:
            logger.debug("Dropping unresolved condition group %r", part)
            continue
        conditions.append(predicate)

    segments = _modifier_segments(tokens[stop:])
    return ConditionClause(
        conditions=tidy_connectors(conditions),
        order_by=_parse_order_by(segments, entities, lexicon, main_entity),
        group_by=_parse_group_by(segments, entities, lexicon, main_entity),
        limit=_parse_limit(segments),
    )


def split_by_and_or(tokens: Sequence[str]) -> List[object]:
    """
    Split condition tokens on bare AND/OR, keeping the connectors as markers.

    :return: Token groups interleaved with :class:`Connector` markers
    """
    parts: List[object] = []
    buffer: List[str] = []
    for token in tokens:
        if token in ("and", "or"):
            if buffer:
                parts.append(buffer)
                buffer = []
            parts.append(Connector(token.upper()))
        else:
            buffer.append(token)
    if buffer:
        parts.append(buffer)
    return parts


def tidy_connectors(conditions: Sequence[Condition]) -> List[Condition]:
    """Drop connectors that do not sit between two predicates."""
    tidy: List[Condition] = []
    for condition in conditions:
        if isinstance(condition, Connector):
            if not tidy or isinstance(tidy[-1], Connector):
                continue
        tidy.append(condition)
    while tidy and isinstance(tidy[-1], Connector):
        tidy.pop()
    return tidy


def find_operator_span(
    tokens: Sequence[str], operators: Tuple[OperatorPhrase, ...] = OPERATOR_PHRASES
) -> Optional[OperatorSpan]:
    """
    Locate the operator of a condition group: the earliest position wins, then the longest
    phrase starting there. A copula directly followed by another operator ("is greater than")
    folds into that operator.

    :param tokens: The tokens of one condition group
    :param operators: The operator phrasings to look for, in priority order
    :return: The operator span, or None when the group has no operator
    """
    by_phrase = _index_operators(operators)
    lowered = [str(token).lower() for token in tokens]
    for start in range(len(lowered)):
        match = _longest_operator_at(lowered, start, by_phrase)
        if match is None:
            continue
        operator, length = match
        if operator.phrase in COPULAS:
            following = _longest_operator_at(lowered, start + length, by_phrase)
            if following is not None and following[0].phrase not in COPULAS:
                return OperatorSpan(following[0], start, length + following[1])
        return OperatorSpan(operator, start, length)
    return None


@functools.lru_cache(maxsize=None)
def _index_operators(operators: Tuple[OperatorPhrase, ...]) -> Dict[str, OperatorPhrase]:
    by_phrase = {}
    for operator in operators:
        by_phrase.setdefault(operator.phrase, operator)
    return by_phrase


def _longest_operator_at(
    tokens: Sequence[str], start: int, by_phrase: Dict[str, OperatorPhrase]
) -> Optional[Tuple[OperatorPhrase, int]]:
    best = None
    longest = max((operator.words for operator in by_phrase.values()), default=0)
    for length in range(1, longest + 1):
        if start + length > len(tokens):
            break
        operator = by_phrase.get(" ".join(tokens[start : start + length]))
        if operator is not None and (best is None or operator.words > best[0].words):
            best = (operator, length)
    return best


def parse_atomic_condition(
    tokens: Sequence[str],
    entities: Sequence[SchemaEntity],
    lexicon: Lexicon,
    main_entity: Optional[SchemaEntity],
) -> Optional[Predicate]:
    """
    Parse one condition group such as ``age greater than 18``.

    :return: The predicate, or None when the left-hand side names no known field
    """
    span = find_operator_span(tokens, lexicon.operator_map)
    if span is not None:
        lhs_tokens = list(tokens[: span.start])
        rhs_tokens = list(tokens[span.start + span.length :])
        operator = span.operator
    else:
        # "field value" with an implicit equality
        lhs_tokens = list(tokens[:1])
        rhs_tokens = list(tokens[1:])
        operator = OperatorPhrase("=", "=")

    lhs = _resolve_lhs(lhs_tokens, entities, lexicon, main_entity)
    if lhs is None:
        return None

    field_type = lhs.entity.get_field(lhs.field).type
    raw_value = " ".join(rhs_tokens).strip()
    if operator.operator in ("IN", "NOT IN"):
        items = [coerce_value(item, field_type) for item in rhs_tokens if _unquote(item)]
        value = f"({', '.join(items)})" if items else ""
    else:
        value = coerce_value(raw_value, field_type)

    if not value:
        if field_type != BOOLEAN:
            return None
        value = "TRUE"

    return Predicate(
        entity=lhs.entity,
        field=lhs.field,
        operator=operator.operator,
        value=value,
        anchor=operator.anchor,
    )


def coerce_value(raw: str, field_type: str) -> str:
    """
    Render a literal as SQL according to the semantic type of the compared field.

    :param raw: The literal as typed, possibly quoted
    :param field_type: Semantic category of the field
    :return: A SQL literal, or an empty string for an empty input
    """
    value = _unquote(raw)
    if not value:
        return ""
    lowered = value.lower()
    if field_type == BOOLEAN:
        if lowered in TRUE_LITERALS:
            return "TRUE"
        if lowered in FALSE_LITERALS:
            return "FALSE"
        return quote_literal(value)
    if field_type == NUMBER:
        return value if _NUMERIC_LITERAL.match(value) else "0"
    return quote_literal(value)


def quote_literal(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def _unquote(raw: str) -> str:
    value = str(raw or "").strip()
    for quote in ('"', "'"):
        if value.startswith(quote):
            value = value[1:]
        if value.endswith(quote):
            value = value[:-1]
    return value.strip()


def _resolve_lhs(
    tokens: List[str],
    entities: Sequence[SchemaEntity],
    lexicon: Lexicon,
    main_entity: Optional[SchemaEntity],
) -> Optional[FieldRef]:
    if not tokens:
        return None
    field_ref = resolve_field(tokens, entities, lexicon, main_entity)
    if field_ref is not None:
        return field_ref
    for size in range(min(3, len(tokens) - 1), 0, -1):
        field_ref = resolve_field(tokens[-size:], entities, lexicon, main_entity)
        if field_ref is not None:
            return field_ref
    return None


def _modifier_segments(tokens: Sequence[str]) -> Dict[str, List[str]]:
    """Group the tail tokens by the clause marker that precedes them."""
    segments: Dict[str, List[str]] = {}
    current = None
    for token in tokens:
        if token in CLAUSE_MARKERS:
            current = "order by" if token in ORDER_MARKERS else token
            segments.setdefault(current, [])
        elif current is not None:
            segments[current].append(token)
    return segments


def _resolve_modifier_field(
    tokens: List[str],
    entities: Sequence[SchemaEntity],
    lexicon: Lexicon,
    main_entity: Optional[SchemaEntity],
) -> Optional[FieldRef]:
    field_ref = _resolve_lhs(tokens, entities, lexicon, main_entity)
    if field_ref is None and tokens and main_entity is not None:
        return FieldRef(entity=main_entity, field=tokens[0])
    return field_ref


def _parse_order_by(segments, entities, lexicon, main_entity) -> Optional[OrderBy]:
    parts = segments.get("order by")
    if not parts:
        return None
    direction = "ASC"
    if parts[-1] in DESCENDING or parts[-1] in ASCENDING:
        direction = "DESC" if parts[-1] in DESCENDING else "ASC"
        parts = parts[:-1]
    field_ref = _resolve_modifier_field(parts, entities, lexicon, main_entity)
    if field_ref is None:
        return None
    return OrderBy(field=field_ref.field, direction=direction, entity=field_ref.entity)


def _parse_group_by(segments, entities, lexicon, main_entity) -> List[FieldRef]:
    group_by = []
    for part in split_by_and_or(segments.get(GROUP_MARKER, [])):
        if isinstance(part, Connector):
            continue
        field_ref = _resolve_modifier_field(part, entities, lexicon, main_entity)
        if field_ref is not None and field_ref.key not in {ref.key for ref in group_by}:
            group_by.append(field_ref)
    return group_by


def _parse_limit(segments) -> Optional[int]:
    parts = segments.get(LIMIT_MARKER)
    if not parts or not parts[0].isdigit():
        return None
    return int(parts[0])
