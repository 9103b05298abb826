"""Formatters for converting schema entities to LLM-friendly representations."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from ..schema import Field, Relation, SchemaEntity


@dataclass
class SchemaContextFormatter:
    """Formats schema entities into descriptions for LLM prompts."""

    entities: Sequence[SchemaEntity]

    def format_as_json(self) -> str:
        """
        Serialise the entities as an indented JSON document of the form
        ``{"entities": [{"name", "table", "fields", "relations"}]}``.

        :return: The schema as JSON text
        """
        schema = {"entities": [self._entity_as_dict(entity) for entity in self.entities]}
        return json.dumps(schema, indent=2, ensure_ascii=False)

    def format_for_prompt(self) -> str:
        """
        Format the entities as a readable outline.

        :return: One block per entity with its columns and relations
        """
        lines = []
        for entity in self.entities:
            lines.append(self._format_entity(entity))

        relations = [
            self._format_relation(entity, relation)
            for entity in self.entities
            for relation in entity.relations
        ]
        if relations:
            lines.append("\n### Relationships:")
            lines.extend(relations)

        return "\n".join(lines)

    def get_entity_names(self) -> List[str]:
        """
        Get list of all entity names.

        :return: List of entity names
        """
        return [entity.name for entity in self.entities]

    def _format_entity(self, entity: SchemaEntity) -> str:
        lines = [f"\n**{entity.name}** (table `{entity.table_name}`):"]
        for entity_field in entity.fields:
            lines.append(f"  - {entity_field.name}: {entity_field.type}{self._markers(entity_field)}")
        return "\n".join(lines)

    @staticmethod
    def _markers(entity_field: Field) -> str:
        markers = ""
        if entity_field.nullable:
            markers += " (optional)"
        if entity_field.unique:
            markers += " (unique)"
        return markers

    @staticmethod
    def _format_relation(entity: SchemaEntity, relation: Relation) -> str:
        return f"  - {entity.name}.{relation.field} → {relation.target} ({relation.type.name})"

    @staticmethod
    def _entity_as_dict(entity: SchemaEntity) -> Dict[str, Any]:
        return {
            "name": entity.name,
            "table": entity.table_name,
            "fields": [
                {
                    "name": entity_field.name,
                    "type": entity_field.type,
                    "nullable": entity_field.nullable,
                    "unique": entity_field.unique,
                }
                for entity_field in entity.fields
            ],
            "relations": [
                {
                    "field": relation.field,
                    "target": relation.target,
                    "type": relation.type.name,
                    "mappedBy": relation.mapped_by,
                    "inversedBy": relation.inversed_by,
                }
                for relation in entity.relations
            ],
        }
