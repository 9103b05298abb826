import dataclasses

import pytest

from schemaquery.nl_to_sql import tokenize
from schemaquery.nl_to_sql.condition_parser import (
    coerce_value,
    find_operator_span,
    parse_conditions,
    tidy_connectors,
)
from schemaquery.nl_to_sql.lexicon import OperatorPhrase
from schemaquery.nl_to_sql.models import Connector, LikeAnchor, Predicate
from schemaquery.nl_to_sql.select_parser import parse_select


@pytest.fixture
def parse(entities, lexicon):
    """Fixture parsing a request into its select and condition clauses."""

    def _parse(text):
        tokens = tokenize(text).tokens
        select = parse_select(tokens, entities, lexicon)
        return select, parse_conditions(tokens, entities, lexicon, select.main_entity)

    return _parse


class TestSelectParser:
    """Tests for main entity and projection parsing."""

    def test_entity_without_fields_selects_all(self, parse):
        select, _ = parse("show users")
        assert select.main_entity.name == "User"
        assert [ref.field for ref in select.select_fields] == ["*"]

    def test_field_of_entity(self, parse):
        select, _ = parse("select email of user")
        assert select.main_entity.name == "User"
        assert [ref.field for ref in select.select_fields] == ["email"]

    def test_several_fields(self, parse):
        select, _ = parse("show user email and name")
        assert [(ref.entity.name, ref.field) for ref in select.select_fields] == [
            ("User", "email"),
            ("User", "name"),
        ]

    def test_alias_resolves_main_entity(self, parse):
        select, _ = parse("list customers")
        assert select.main_entity.name == "User"

    def test_field_first_sets_main_entity(self, parse):
        select, _ = parse("get sku")
        assert select.main_entity.name == "Product"
        assert [ref.field for ref in select.select_fields] == ["sku"]

    def test_fields_named_in_conditions_are_selected(self, parse):
        select, _ = parse("show products where name = lamp")
        assert [(ref.entity.name, ref.field) for ref in select.select_fields] == [("Product", "name")]

    def test_fields_named_in_modifiers_are_selected(self, parse):
        select, _ = parse("show orders sort by total")
        assert [(ref.entity.name, ref.field) for ref in select.select_fields] == [("Order", "total")]

    def test_main_entity_comes_before_condition_entities(self, parse):
        select, _ = parse("show orders where user email = alice")
        assert select.main_entity.name == "Order"
        assert [(ref.entity.name, ref.field) for ref in select.select_fields] == [("User", "email")]

    def test_request_without_verb(self, parse):
        select, _ = parse("users with age over 30")
        assert select.main_entity.name == "User"
        assert [ref.field for ref in select.select_fields] == ["age"]

    def test_unknown_entity(self, parse):
        select, _ = parse("show me the weather")
        assert select.main_entity is None
        assert select.select_fields == []


class TestConditionParser:
    """Tests for WHERE, ORDER BY, GROUP BY and LIMIT parsing."""

    def test_conditions_round_trip(self, parse, entities_by_name):
        _, clause = parse("show users where age > 18 and active = true")
        user = entities_by_name["User"]
        assert clause.conditions == [
            Predicate(entity=user, field="age", operator=">", value="18"),
            Connector("AND"),
            Predicate(entity=user, field="active", operator="=", value="TRUE"),
        ]

    @pytest.mark.parametrize(
        "text, operator, value",
        [
            ("show users where age greater than 30", ">", "30"),
            ("show users where age is greater than 30", ">", "30"),
            ("show users where age at least 30", ">=", "30"),
            ("show users where age no more than 30", "<=", "30"),
            ("show users where age under 30", "<", "30"),
            ("show users where name is not bob", "<>", "'bob'"),
            ("show users where name is bob", "=", "'bob'"),
            ("show users where age != 30", "<>", "30"),
        ],
    )
    def test_operator_phrases(self, parse, text, operator, value):
        _, clause = parse(text)
        predicate = clause.conditions[0]
        assert (predicate.operator, predicate.value) == (operator, value)

    @pytest.mark.parametrize(
        "text, anchor",
        [
            ("show users with email containing gmail", LikeAnchor.CONTAINS),
            ("show users with email contains gmail", LikeAnchor.CONTAINS),
            ("show users with name starts with jo", LikeAnchor.STARTS),
            ("show users with name ends with son", LikeAnchor.ENDS),
            ("show users with name like jo", None),
        ],
    )
    def test_like_anchor(self, parse, text, anchor):
        _, clause = parse(text)
        predicate = clause.conditions[0]
        assert predicate.operator == "LIKE"
        assert predicate.anchor == anchor

    def test_in_list(self, parse):
        _, clause = parse("show orders where status in open shipped")
        assert clause.conditions[0].operator == "IN"
        assert clause.conditions[0].value == "('open', 'shipped')"

    def test_qualified_field_of_other_entity(self, parse):
        _, clause = parse("show orders where user email = alice")
        predicate = clause.conditions[0]
        assert (predicate.entity.name, predicate.field, predicate.value) == ("User", "email", "'alice'")

    def test_boolean_without_value(self, parse):
        _, clause = parse("show users where active")
        assert clause.conditions[0].value == "TRUE"

    def test_unresolved_group_drops_its_connector(self, parse):
        _, clause = parse("show users where colour = red and age > 3")
        assert len(clause.conditions) == 1
        assert clause.conditions[0].field == "age"

    def test_or_connector(self, parse):
        _, clause = parse("show users where age < 18 or age > 65")
        assert clause.conditions[1] == Connector("OR")

    def test_order_by_and_limit(self, parse):
        _, clause = parse("show users where active = true order by created_at desc limit 10")
        assert clause.order_by.field == "created_at"
        assert clause.order_by.direction == "DESC"
        assert clause.limit == 10
        assert len(clause.conditions) == 1

    def test_modifiers_without_connector(self, parse):
        """Test that ORDER BY, GROUP BY and LIMIT are found when there is no WHERE clause."""
        _, clause = parse("show orders group by status sort by total limit 5")
        assert clause.conditions == []
        assert [ref.field for ref in clause.group_by] == ["status"]
        assert clause.order_by.field == "total"
        assert clause.order_by.direction == "ASC"
        assert clause.limit == 5

    def test_invalid_limit(self, parse):
        _, clause = parse("show users limit many")
        assert clause.limit is None

    def test_operator_phrases_come_from_the_lexicon(self, entities, lexicon, entities_by_name):
        lexicon = dataclasses.replace(lexicon, operator_map=(OperatorPhrase("exceeds", ">"),))
        tokens = tokenize("show users where age exceeds 18").tokens
        clause = parse_conditions(tokens, entities, lexicon, entities_by_name["User"])

        assert clause.conditions == [
            Predicate(entity=entities_by_name["User"], field="age", operator=">", value="18")
        ]


class TestConditionHelpers:
    """Tests for the condition parsing building blocks."""

    def test_earliest_operator_wins(self):
        span = find_operator_span(["name", "like", "more", "than"])
        assert span.operator.operator == "LIKE"
        assert span.start == 1

    def test_longest_operator_at_same_position(self):
        span = find_operator_span(["age", "not", "in", "1", "2"])
        assert span.operator.operator == "NOT IN"
        assert span.length == 2

    def test_no_operator(self):
        assert find_operator_span(["age", "18"]) is None

    @pytest.mark.parametrize(
        "raw, field_type, expected",
        [
            ("yes", "boolean", "TRUE"),
            ("0", "boolean", "FALSE"),
            ("42", "number", "42"),
            ("-1.5", "number", "-1.5"),
            ("abc", "number", "0"),
            ("o'brien", "string", "'o''brien'"),
            ("'quoted'", "string", "'quoted'"),
            ("", "string", ""),
        ],
    )
    def test_coerce_value(self, raw, field_type, expected):
        assert coerce_value(raw, field_type) == expected

    def test_tidy_connectors(self, entities_by_name):
        predicate = Predicate(entity=entities_by_name["User"], field="age", operator=">", value="1")
        conditions = [Connector("AND"), predicate, Connector("OR"), Connector("AND"), predicate, Connector("OR")]
        assert tidy_connectors(conditions) == [predicate, Connector("OR"), predicate]
