"""SQL builder: minimal joins, identifier quoting, LIKE shaping."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set, Tuple

from ..schema import Relation, RelationType, SchemaEntity
from .models import Connector, LikeAnchor, Path, Predicate, QueryPlan

RESERVED_WORDS = frozenset({"user", "order", "group", "select", "from", "where", "limit", "table"})
_SAFE_IDENTIFIER = re.compile(r"^[A-Za-z0-9_]+$")


def quote_identifier(identifier: str) -> str:
    """
    Quote an identifier when it contains special characters or is a reserved word.

    :param identifier: Table or column name
    :return: The identifier, double-quoted when needed
    """
    identifier = str(identifier)
    if not _SAFE_IDENTIFIER.match(identifier) or identifier.lower() in RESERVED_WORDS:
        return '"' + identifier.replace('"', '""') + '"'
    return identifier


@dataclass(frozen=True)
class Join:
    source: SchemaEntity
    target: SchemaEntity
    relation: Relation


@dataclass
class AliasAllocator:
    """
    Hands out table aliases: the lower-cased first letter of the entity name, with a numeric
    suffix when two entities share it (``u``, ``u2``).
    """

    aliases: Dict[str, str] = field(default_factory=dict)

    def alias_of(self, entity: SchemaEntity) -> str:
        if entity.entity_id not in self.aliases:
            base = (entity.name[:1] or "t").lower()
            if not base.isalpha():
                base = "t"
            taken = set(self.aliases.values())
            alias, suffix = base, 2
            while alias in taken:
                alias = f"{base}{suffix}"
                suffix += 1
            self.aliases[entity.entity_id] = alias
        return self.aliases[entity.entity_id]


def select_join_paths(plan: QueryPlan, paths: Sequence[Path]) -> List[Path]:
    """
    Pick, for every required entity other than the main one, the shortest candidate path
    from the main entity, dropping chains already selected.

    :param plan: The query plan
    :param paths: Candidate paths starting at the main entity
    :return: The chains to join, in order of first mention of their target
    """
    main_id = plan.main_entity.entity_id
    chosen: List[Path] = []
    seen_chains: Set[Tuple[str, ...]] = set()
    for entity in plan.required_entities():
        if entity.entity_id == main_id:
            continue
        candidates = [
            path
            for path in paths
            if path.source.entity_id == main_id and path.target.entity_id == entity.entity_id
        ]
        if not candidates:
            continue
        shortest = min(candidates, key=lambda path: path.length)
        if shortest.key not in seen_chains:
            seen_chains.add(shortest.key)
            chosen.append(shortest)
    return chosen


def collect_joins(plan: QueryPlan, paths: Sequence[Path]) -> List[Join]:
    """Flatten the selected chains into joins; an entity is joined at most once."""
    joined = {plan.main_entity.entity_id}
    joins: List[Join] = []
    for path in select_join_paths(plan, paths):
        for index, relation in enumerate(path.relations):
            source, target = path.entities[index], path.entities[index + 1]
            if target.entity_id in joined:
                continue
            joined.add(target.entity_id)
            joins.append(Join(source=source, target=target, relation=relation))
    return joins


def build_sql(plan: QueryPlan, paths: Sequence[Path]) -> str:
    """
    Render a query plan as SQL.

    :param plan: The resolved query plan
    :param paths: Candidate paths from the main entity to the other required entities
    :return: The SQL text, one clause per line
    """
    aliases = AliasAllocator()
    main_alias = aliases.alias_of(plan.main_entity)
    joins = collect_joins(plan, paths)
    for join in joins:
        aliases.alias_of(join.target)

    lines = [f"SELECT {_projection(plan, aliases)}"]
    lines.append(f"FROM {quote_identifier(plan.main_entity.table_name)} {main_alias}")

    for join in joins:
        target_alias = aliases.alias_of(join.target)
        lines.append(
            f"INNER JOIN {quote_identifier(join.target.table_name)} {target_alias} "
            f"ON {_join_condition(join, aliases)}"
        )

    if plan.conditions:
        lines.append("WHERE")
        for condition in plan.conditions:
            if isinstance(condition, Connector):
                lines.append(condition.connector)
                continue
            lines.append(f"  {_column(condition.entity, condition.field, aliases)} "
                         f"{condition.operator} {shape_right_hand(condition)}")

    if plan.order_by is not None:
        entity = plan.order_by.entity or plan.main_entity
        lines.append(
            f"ORDER BY {_column(entity, plan.order_by.field, aliases)} {plan.order_by.direction}"
        )

    if plan.group_by:
        columns = ", ".join(_column(ref.entity, ref.field, aliases) for ref in plan.group_by)
        lines.append(f"GROUP BY {columns}")

    if plan.limit is not None:
        lines.append(f"LIMIT {plan.limit}")

    return "\n".join(lines).strip()


def shape_right_hand(predicate: Predicate) -> str:
    """
    Add LIKE wildcards according to how the condition was phrased; values that already
    carry a ``%`` are kept as they are.

    :param predicate: The predicate to render
    :return: The right-hand side SQL
    """
    if predicate.operator != "LIKE":
        return predicate.value
    unquoted = predicate.value
    if len(unquoted) >= 2 and unquoted.startswith("'") and unquoted.endswith("'"):
        unquoted = unquoted[1:-1]
    if "%" in unquoted:
        return f"'{unquoted}'"
    if predicate.anchor == LikeAnchor.STARTS:
        return f"'{unquoted}%'"
    if predicate.anchor == LikeAnchor.ENDS:
        return f"'%{unquoted}'"
    return f"'%{unquoted}%'"


def _projection(plan: QueryPlan, aliases: AliasAllocator) -> str:
    if not plan.select_fields:
        return f"{aliases.alias_of(plan.main_entity)}.*"
    return ", ".join(
        _column(ref.entity, ref.field, aliases) for ref in plan.select_fields
    )


def _column(entity: SchemaEntity, column: str, aliases: AliasAllocator) -> str:
    alias = aliases.alias_of(entity)
    if column == "*":
        return f"{alias}.*"
    return f"{alias}.{quote_identifier(column)}"


def _join_condition(join: Join, aliases: AliasAllocator) -> str:
    relation = join.relation
    source_alias = aliases.alias_of(join.source)
    target_alias = aliases.alias_of(join.target)
    owning_single = relation.type in (RelationType.ONE_TO_ONE, RelationType.MANY_TO_ONE) and (
        relation.is_owning or not relation.mapped_by
    )
    if owning_single:
        return f"{source_alias}.{quote_identifier(relation.field + '_id')} = {target_alias}.id"
    foreign_key = _inverse_key(relation)
    return f"{target_alias}.{quote_identifier(foreign_key + '_id')} = {source_alias}.id"


def _inverse_key(relation: Relation) -> str:
    return relation.mapped_by or relation.field
