"""Schema-aware lexicon: the strings that identify entities and fields."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from ..schema import SchemaEntity
from .models import LikeAnchor
from .tokenizer import CONNECTOR_PHRASES


@dataclass(frozen=True)
class OperatorPhrase:
    phrase: str
    operator: str
    anchor: Optional[LikeAnchor] = None

    @property
    def words(self) -> int:
        return len(self.phrase.split())


OPERATOR_PHRASES: Tuple[OperatorPhrase, ...] = (
    OperatorPhrase("greater than or equal to", ">="),
    OperatorPhrase("less than or equal to", "<="),
    OperatorPhrase("no more than", "<="),
    OperatorPhrase("not equal to", "<>"),
    OperatorPhrase("is not in", "NOT IN"),
    OperatorPhrase("greater than", ">"),
    OperatorPhrase("more than", ">"),
    OperatorPhrase("less than", "<"),
    OperatorPhrase("at least", ">="),
    OperatorPhrase("starts with", "LIKE", LikeAnchor.STARTS),
    OperatorPhrase("starting with", "LIKE", LikeAnchor.STARTS),
    OperatorPhrase("begins with", "LIKE", LikeAnchor.STARTS),
    OperatorPhrase("ends with", "LIKE", LikeAnchor.ENDS),
    OperatorPhrase("ending with", "LIKE", LikeAnchor.ENDS),
    OperatorPhrase("equal to", "="),
    OperatorPhrase("not in", "NOT IN"),
    OperatorPhrase("is not", "<>"),
    OperatorPhrase("is in", "IN"),
    OperatorPhrase("contains", "LIKE", LikeAnchor.CONTAINS),
    OperatorPhrase("containing", "LIKE", LikeAnchor.CONTAINS),
    OperatorPhrase("includes", "LIKE", LikeAnchor.CONTAINS),
    OperatorPhrase("like", "LIKE"),
    OperatorPhrase("equals", "="),
    OperatorPhrase("is", "="),
    OperatorPhrase("over", ">"),
    OperatorPhrase("above", ">"),
    OperatorPhrase("under", "<"),
    OperatorPhrase("below", "<"),
    OperatorPhrase("in", "IN"),
    OperatorPhrase(">=", ">="),
    OperatorPhrase("<=", "<="),
    OperatorPhrase("<>", "<>"),
    OperatorPhrase("!=", "<>"),
    OperatorPhrase("==", "="),
    OperatorPhrase(">", ">"),
    OperatorPhrase("<", "<"),
    OperatorPhrase("=", "="),
)
"""Operator phrasings in priority order, compound phrases before single symbols."""

_VOWEL_Y = re.compile(r"[aeiou]y$")


@dataclass(frozen=True)
class Lexicon:
    """Lookup tables derived from one schema snapshot and alias set."""

    entity_names: Mapping[str, FrozenSet[str]]
    """Entity id -> lower-cased variants that identify it."""

    field_names_by_entity: Mapping[str, FrozenSet[str]]
    """Entity id -> lower-cased field names."""

    connectors: FrozenSet[str] = frozenset(CONNECTOR_PHRASES)
    operator_map: Tuple[OperatorPhrase, ...] = OPERATOR_PHRASES
    """Operator phrasings the condition parser recognises, in priority order."""

    def variants_of(self, entity: SchemaEntity) -> FrozenSet[str]:
        return self.entity_names.get(entity.entity_id, frozenset())


def build_lexicon(
    entities: Iterable[SchemaEntity],
    aliases: Optional[Mapping[str, Iterable[str]]] = None,
) -> Lexicon:
    """
    Build the lexicon for a set of entities.

    :param entities: The schema entities
    :param aliases: User-defined aliases keyed by entity id (FQCN) or entity name
    :return: A lexicon that is never mutated afterwards
    """
    aliases = aliases or {}
    entity_names: Dict[str, FrozenSet[str]] = {}
    field_names: Dict[str, FrozenSet[str]] = {}

    for entity in entities:
        variants = set()
        for base in (entity.name, entity.table_name):
            if not base:
                continue
            lowered = base.lower()
            for form in (lowered, pluralize(lowered), naive_plural(lowered), singularize(lowered)):
                variants.add(form)
                variants.add(form.replace("_", ""))

        for alias in _aliases_for(entity, aliases):
            variants.add(alias.strip().lower())

        entity_names[entity.entity_id] = frozenset(variant for variant in variants if variant)
        field_names[entity.entity_id] = frozenset(
            entity_field.name.lower() for entity_field in entity.fields
        )

    return Lexicon(entity_names=entity_names, field_names_by_entity=field_names)


def pluralize(word: str) -> str:
    """Naive English plural."""
    if not word:
        return word
    lowered = word.lower()
    if lowered.endswith("y") and not _VOWEL_Y.search(lowered):
        return word[:-1] + "ies"
    if lowered.endswith(("s", "ch", "sh", "x", "z")):
        return word + "es"
    return word + "s"


def naive_plural(word: str) -> str:
    """
    The plain suffix rule: "y" becomes "ies", "ch", "sh", "x" and "z" take "es", anything else
    takes "s". Kept next to :func:`pluralize` so that both spellings resolve.
    """
    if not word:
        return word
    lowered = word.lower()
    if lowered.endswith("y"):
        return word[:-1] + "ies"
    if lowered.endswith(("ch", "sh", "x", "z")):
        return word + "es"
    return word + "s"


def singularize(word: str) -> str:
    """Naive English singular, the inverse of :func:`pluralize` for regular nouns."""
    if not word:
        return word
    lowered = word.lower()
    if lowered.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if lowered.endswith(("ches", "shes", "xes", "zes", "sses")):
        return word[:-2]
    if lowered.endswith("s") and not lowered.endswith("ss"):
        return word[:-1]
    return word


def _aliases_for(entity: SchemaEntity, aliases: Mapping[str, Iterable[str]]) -> Iterable[str]:
    seen = []
    for key in (entity.entity_id, entity.name):
        for alias in aliases.get(key, ()):
            if alias not in seen:
                seen.append(alias)
    return seen
