"""Shared schema fixtures: a small shop with users, orders, order items, products and profiles."""

import pytest

from schemaquery.nl_to_sql import build_lexicon
from schemaquery.schema import load_entities


def shop_schema_payload():
    """The schema as the introspection collaborator delivers it."""
    return [
        {
            "name": "User",
            "fqcn": "App\\Entity\\User",
            "tableName": "user",
            "fields": [
                {"name": "id", "type": "integer"},
                {"name": "email", "type": "string", "unique": True, "length": 180},
                {"name": "name", "type": "string"},
                {"name": "age", "type": "integer", "nullable": True},
                {"name": "active", "type": "boolean"},
                {"name": "created_at", "type": "datetime_immutable"},
            ],
            "associations": [
                {"fieldName": "orders", "targetEntity": "Order", "type": 4, "mappedBy": "user"},
                {"fieldName": "profile", "targetEntity": "Profile", "type": "OneToOne", "mappedBy": "user"},
            ],
        },
        {
            "name": "Order",
            "fqcn": "App\\Entity\\Order",
            "tableName": "order",
            "fields": [
                {"name": "id", "type": "integer"},
                {"name": "total", "type": "decimal"},
                {"name": "status", "type": "string"},
                {"name": "created_at", "type": "datetime"},
            ],
            "associations": [
                {"fieldName": "user", "targetEntity": "User", "type": "ManyToOne", "inversedBy": "orders"},
                {"fieldName": "items", "targetEntity": "OrderItem", "type": "one_to_many", "mappedBy": "order"},
            ],
        },
        {
            "name": "OrderItem",
            "fqcn": "App\\Entity\\OrderItem",
            "tableName": "order_item",
            "fields": [
                {"name": "id", "type": "integer"},
                {"name": "quantity", "type": "integer"},
                {"name": "price", "type": "decimal"},
            ],
            "associations": [
                {"fieldName": "order", "targetEntity": "Order", "type": 2, "inversedBy": "items"},
                {"fieldName": "product", "targetEntity": "App\\Entity\\Product", "type": 2},
            ],
        },
        {
            "name": "Product",
            "fqcn": "App\\Entity\\Product",
            "tableName": "product",
            "fields": [
                {"name": "id", "type": "integer"},
                {"name": "name", "type": "string"},
                {"name": "sku", "type": "string"},
                {"name": "price", "type": "decimal"},
            ],
        },
        {
            "name": "Profile",
            "fqcn": "App\\Entity\\Profile",
            "tableName": "profile",
            "fields": [
                {"name": "id", "type": "integer"},
                {"name": "bio", "type": "text", "nullable": True},
            ],
            "associations": [
                {"fieldName": "user", "targetEntity": "User", "type": "OneToOne", "inversedBy": "profile"},
            ],
        },
        {
            "name": "Category",
            "fqcn": "App\\Entity\\Category",
            "tableName": "category",
            "fields": [
                {"name": "id", "type": "integer"},
                {"name": "title", "type": "string"},
            ],
        },
    ]


@pytest.fixture
def entity_payloads():
    """Fixture providing the raw schema payload."""
    return shop_schema_payload()


@pytest.fixture
def entities(entity_payloads):
    """Fixture providing the schema as entities."""
    return load_entities(entity_payloads)


@pytest.fixture
def entities_by_name(entities):
    """Fixture providing the entities keyed by name."""
    return {entity.name: entity for entity in entities}


@pytest.fixture
def lexicon(entities):
    """Fixture providing the lexicon of the schema, with an alias for users."""
    return build_lexicon(entities, {"App\\Entity\\User": ["customer", "customers"]})
