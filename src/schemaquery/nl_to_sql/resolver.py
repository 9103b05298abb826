"""Entity and field resolution utilities."""

from __future__ import annotations

import re
from typing import Optional, Sequence

from ..schema import SchemaEntity
from .lexicon import Lexicon
from .models import FieldRef

_FIELD_OF_ENTITY = re.compile(r"^(?P<field>\w+)\s+of\s+(?P<entity>\w+)$")
_ENTITY_FIELD = re.compile(r"^(?P<entity>\w+)(?:\s+|\.)(?P<field>\w+)$")


def resolve_entity(
    token: str, lexicon: Lexicon, entities: Sequence[SchemaEntity]
) -> Optional[SchemaEntity]:
    """
    Map a single token to an entity through the lexicon variants.

    :param token: A token of the request
    :param lexicon: The lexicon built for ``entities``
    :param entities: The schema entities, in priority order
    :return: The first entity whose variants contain the token, or None
    """
    lowered = token.lower()
    for entity in entities:
        if lowered in lexicon.variants_of(entity):
            return entity
    return None


def resolve_field(
    window: Sequence[str],
    entities: Sequence[SchemaEntity],
    lexicon: Lexicon,
    bias_entity: Optional[SchemaEntity] = None,
) -> Optional[FieldRef]:
    """
    Resolve a window of tokens to an entity field.

    Explicit qualification (``email of user``, ``user email``, ``user.email``) wins over the
    bias entity, and the bias entity wins over a scan of all entities.

    :param window: One to three consecutive tokens
    :param entities: The schema entities, in priority order
    :param lexicon: The lexicon built for ``entities``
    :param bias_entity: Preferred owner of unqualified field names, usually the main entity
    :return: The resolved field, or None
    """
    joined = " ".join(window).strip().lower()
    if not joined:
        return None

    for pattern in (_FIELD_OF_ENTITY, _ENTITY_FIELD):
        match = pattern.match(joined)
        if match is None:
            continue
        entity = resolve_entity(match.group("entity"), lexicon, entities)
        if entity is not None:
            field_ref = _field_ref(entity, match.group("field"))
            if field_ref is not None:
                return field_ref

    if bias_entity is not None:
        field_ref = _field_ref(bias_entity, joined)
        if field_ref is not None:
            return field_ref

    for entity in entities:
        field_ref = _field_ref(entity, joined)
        if field_ref is not None:
            return field_ref
    return None


def _field_ref(entity: SchemaEntity, name: str) -> Optional[FieldRef]:
    entity_field = entity.get_field(name)
    if entity_field is None:
        return None
    return FieldRef(entity=entity, field=entity_field.name)
