from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from typing_extensions import Self

from .field_types import get_semantic_type


class RelationType(Enum):
    """
    Cardinality of a relation edge. Values follow the ORM association codes.
    """

    ONE_TO_ONE = 1
    MANY_TO_ONE = 2
    ONE_TO_MANY = 4
    MANY_TO_MANY = 8

    @classmethod
    def parse(cls, value: Union[RelationType, int, str]) -> RelationType:
        """
        Parse a relation type from the enum itself, an integer code or a name such as
        ``ManyToOne``, ``many_to_one`` or ``MANY_TO_ONE``.

        :param value: The raw relation type
        :return: The matching relation type
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            return cls(value)
        normalized = str(value).strip().replace("-", "").replace("_", "").lower()
        if normalized.isdigit():
            return cls(int(normalized))
        for member in cls:
            if member.name.replace("_", "").lower() == normalized:
                return member
        raise ValueError(f"Unknown relation type: {value!r}")


@dataclass(frozen=True)
class Field:
    """
    A scalar column of an entity.
    """

    name: str
    """The field (property) name."""

    type: str = "string"
    """Semantic category used to coerce literal values."""

    nullable: bool = False
    """Whether the column accepts NULL."""

    unique: bool = False
    """Whether the column carries a unique constraint."""

    length: Optional[int] = None
    """Declared length for string columns."""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], name: Optional[str] = None) -> Self:
        return cls(
            name=name if name is not None else data["name"],
            type=get_semantic_type(data.get("type")),
            nullable=bool(data.get("nullable", False)),
            unique=bool(data.get("unique", False)),
            length=data.get("length"),
        )


@dataclass(frozen=True)
class Relation:
    """
    A directed association edge from the owning entity to ``target``.
    """

    field: str
    """The association property name on the source entity."""

    target: str
    """Name or FQCN of the target entity."""

    type: RelationType
    """Cardinality of the association."""

    is_owning: bool = False
    """Whether the source side stores the foreign key."""

    mapped_by: Optional[str] = None
    """Field name on the owning side, set on the inverse side of a bidirectional relation."""

    inversed_by: Optional[str] = None
    """Field name on the inverse side, set on the owning side of a bidirectional relation."""

    nullable: Optional[bool] = None
    """Whether the join column accepts NULL, when known."""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], field_name: Optional[str] = None) -> Self:
        relation_type = RelationType.parse(data["type"])
        is_owning = data.get("isOwning", data.get("owning"))
        if is_owning is None:
            # many-to-one always stores the key, everything else is inverse unless mapped
            is_owning = relation_type == RelationType.MANY_TO_ONE or (
                relation_type == RelationType.ONE_TO_ONE and not data.get("mappedBy")
            )
        return cls(
            field=field_name if field_name is not None else data.get("field", data.get("fieldName")),
            target=data.get("target", data.get("targetEntity")),
            type=relation_type,
            is_owning=bool(is_owning),
            mapped_by=data.get("mappedBy"),
            inversed_by=data.get("inversedBy"),
            nullable=data.get("nullable"),
        )


@dataclass(frozen=True)
class SchemaEntity:
    """
    A mapped entity of the documented schema together with its fields and outgoing relations.
    """

    name: str
    """Short entity name, e.g. ``User``."""

    table_name: str
    """Physical table name."""

    fqcn: Optional[str] = None
    """Fully-qualified identifier, the canonical key when present."""

    fields: Tuple[Field, ...] = field(default_factory=tuple)
    """Scalar columns."""

    relations: Tuple[Relation, ...] = field(default_factory=tuple)
    """Outgoing association edges."""

    @property
    def entity_id(self) -> str:
        """The canonical key of the entity: its FQCN, or its name when no FQCN is known."""
        return self.fqcn or self.name

    def get_field(self, name: str) -> Optional[Field]:
        """
        Look up a field by case-insensitive exact name.

        :param name: The field name
        :return: The field, or None when the entity has no such field
        """
        lowered = str(name).lower()
        for entity_field in self.fields:
            if entity_field.name.lower() == lowered:
                return entity_field
        return None

    def has_field(self, name: str) -> bool:
        return self.get_field(name) is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """
        Build an entity from the schema-introspection payload. Both list shaped
        (``[{"name": ...}]``) and mapping shaped (``{"email": {...}}``) fields and relations
        are accepted, as are the ``associations``/``rels`` aliases of ``relations``.

        :param data: The raw entity description
        :return: The immutable entity
        """
        name = data.get("name") or _short_name(data["fqcn"])
        table_name = data.get("tableName") or data.get("table") or name.lower()
        raw_relations = data.get("relations", data.get("associations", data.get("rels", [])))
        return cls(
            name=name,
            table_name=table_name,
            fqcn=data.get("fqcn"),
            fields=tuple(_build_items(Field, data.get("fields", []))),
            relations=tuple(_build_items(Relation, raw_relations)),
        )


def load_entities(entities: Iterable[Union[SchemaEntity, Mapping[str, Any]]]) -> List[SchemaEntity]:
    """
    Normalize a mixed list of entity payloads into :class:`SchemaEntity` objects.

    :param entities: Entities or raw entity dictionaries
    :return: Entities in the given order
    """
    return [
        entity if isinstance(entity, SchemaEntity) else SchemaEntity.from_dict(entity)
        for entity in entities
    ]


def _build_items(item_class, raw_items: Union[Iterable[Mapping[str, Any]], Dict[str, Mapping[str, Any]]]):
    if isinstance(raw_items, Mapping):
        return [item_class.from_dict(spec, name) for name, spec in raw_items.items()]
    return [item_class.from_dict(spec) for spec in raw_items]


def _short_name(fqcn: str) -> str:
    return fqcn.replace("\\", ".").split(".")[-1]
