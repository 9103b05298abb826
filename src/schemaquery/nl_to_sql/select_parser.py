"""Projection parsing: the main entity and the selected fields."""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..schema import SchemaEntity
from .lexicon import Lexicon
from .models import FieldRef, SelectClause
from .resolver import resolve_entity, resolve_field

logger = logging.getLogger(__name__)

VERBS = frozenset({"show", "get", "list", "select", "find", "retrieve"})
MAX_WINDOW = 3


def parse_select(
    tokens: Sequence[str], entities: Sequence[SchemaEntity], lexicon: Lexicon
) -> SelectClause:
    """
    Identify the main entity and the projected fields.

    Supports requests such as "select user email", "show users" or
    "list name of training and id".

    :param tokens: The request tokens
    :param entities: The schema entities, in priority order
    :param lexicon: The lexicon built for ``entities``
    :return: The main entity (None when nothing resolves) and the selected fields
    """
    scan = projection_segment(tokens)

    main_entity = None
    for token in scan:
        main_entity = resolve_entity(token, lexicon, entities)
        if main_entity is not None:
            break

    select_fields: List[FieldRef] = []
    seen = set()
    for index in range(len(scan)):
        for size in range(1, MAX_WINDOW + 1):
            if index + size > len(scan):
                break
            field_ref = resolve_field(scan[index : index + size], entities, lexicon, main_entity)
            if field_ref is None:
                continue
            if main_entity is None:
                main_entity = field_ref.entity
            if field_ref.key not in seen:
                seen.add(field_ref.key)
                select_fields.append(field_ref)

    if not select_fields and main_entity is not None:
        select_fields.append(FieldRef(entity=main_entity, field="*"))

    logger.debug(
        "Parsed projection: main=%s fields=%s",
        main_entity.name if main_entity else None,
        [f"{ref.entity.name}.{ref.field}" for ref in select_fields],
    )
    return SelectClause(main_entity=main_entity, select_fields=select_fields)


def projection_segment(tokens: Sequence[str]) -> List[str]:
    """
    The tokens after the first verb, or every token when the request has no verb.

    Condition and modifier words stay in the segment, so a field named in a condition is
    selected too.

    :param tokens: The request tokens
    :return: The part of the request scanned for the main entity and the selected fields
    """
    tokens = list(tokens)
    for index, token in enumerate(tokens):
        if token in VERBS:
            return tokens[index + 1 :]
    return tokens
