"""Finds the entities and fields a request mentions, to narrow the schema sent to a remote model."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Sequence

from ..schema import SchemaEntity
from .lexicon import Lexicon, build_lexicon
from .models import FieldRef
from .resolver import resolve_entity, resolve_field
from .tokenizer import tokenize

logger = logging.getLogger(__name__)

SQL_KEYWORDS = frozenset({
    "select", "from", "where", "join", "left", "right", "inner", "outer", "on", "and", "or",
    "not", "in", "like", "is", "null", "order", "by", "group", "having", "limit", "offset",
    "as", "asc", "desc", "distinct", "count", "sum", "avg", "max", "min", "all", "any",
    "between", "case", "when", "then", "else", "end", "exists", "union", "except", "intersect",
})

STOP_WORDS = frozenset({
    "a", "an", "the", "of", "to", "for", "with", "at", "by", "from", "in", "into", "on",
    "onto", "off", "out", "over", "under", "again", "further", "then", "once", "here",
    "there", "when", "where", "why", "how", "all", "both", "each", "few", "more", "most",
    "other", "some", "such", "only", "own", "same", "so", "than", "too", "very", "can",
    "will", "just", "should", "now", "my", "your", "his", "her", "its", "our", "their",
    "what", "which", "who", "whom", "this", "that", "these", "those", "am", "is", "are",
    "was", "were", "be", "been", "being", "have", "has", "had", "having", "do", "does",
    "did", "doing", "get", "show", "list", "find", "give", "retrieve", "fetch",
})


@dataclass(frozen=True)
class QueryAnalysis:
    tokens: List[str]
    mentioned_entities: List[SchemaEntity] = field(default_factory=list)
    mentioned_fields: List[FieldRef] = field(default_factory=list)


@dataclass
class QueryAnalyzer:
    """Looks up the entities and fields a request talks about, ignoring SQL keywords and stop words."""

    aliases: Mapping[str, Iterable[str]] = field(default_factory=dict)

    def analyze(self, prompt: str, entities: Sequence[SchemaEntity]) -> QueryAnalysis:
        """
        Analyze a request against a schema.

        :param prompt: The natural language request
        :param entities: The schema entities
        :return: Tokens, mentioned entities and mentioned fields, in order of appearance
        """
        tokens = tokenize(prompt).tokens
        lexicon = build_lexicon(entities, self.aliases)
        mentioned_entities = self._resolve_entities(tokens, entities, lexicon)
        mentioned_fields = self._resolve_fields(tokens, entities, lexicon, mentioned_entities)
        logger.debug(
            "Analyzed request: entities=%s fields=%s",
            [entity.name for entity in mentioned_entities],
            [f"{ref.entity.name}.{ref.field}" for ref in mentioned_fields],
        )
        return QueryAnalysis(tokens, mentioned_entities, mentioned_fields)

    @staticmethod
    def _resolve_entities(
        tokens: Sequence[str], entities: Sequence[SchemaEntity], lexicon: Lexicon
    ) -> List[SchemaEntity]:
        found: List[SchemaEntity] = []
        for token in tokens:
            if is_ignored_word(token):
                continue
            entity = resolve_entity(token, lexicon, entities)
            if entity is not None and entity not in found:
                found.append(entity)
        return found

    @staticmethod
    def _resolve_fields(
        tokens: Sequence[str],
        entities: Sequence[SchemaEntity],
        lexicon: Lexicon,
        mentioned_entities: Sequence[SchemaEntity],
    ) -> List[FieldRef]:
        candidates = list(mentioned_entities) or list(entities)
        fields: List[FieldRef] = []
        seen = set()
        for index, token in enumerate(tokens):
            if is_ignored_word(token):
                continue
            # "email of user" and "user email" before the bare field name
            for size in (3, 2, 1):
                if index + size > len(tokens):
                    continue
                window = tokens[index : index + size]
                if size == 1:
                    field_ref = resolve_field(window, candidates, lexicon)
                else:
                    field_ref = resolve_field(window, entities, lexicon)
                if field_ref is not None:
                    if field_ref.key not in seen:
                        seen.add(field_ref.key)
                        fields.append(field_ref)
                    break
        return fields


def is_ignored_word(word: str) -> bool:
    lowered = word.lower()
    return lowered in SQL_KEYWORDS or lowered in STOP_WORDS
