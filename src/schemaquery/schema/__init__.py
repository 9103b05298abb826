"""Schema graph consumed by the translation engine."""

from .model import Field, Relation, RelationType, SchemaEntity, load_entities
from .field_types import get_semantic_type

__all__ = [
    "Field",
    "Relation",
    "RelationType",
    "SchemaEntity",
    "load_entities",
    "get_semantic_type",
]
