"""
Finds paths between two entities in the schema graph with a breadth-first search.
Used to determine which JOINs connect the entities of a query.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..schema import Relation, SchemaEntity
from .models import Path

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 5


@dataclass(frozen=True)
class Edge:
    """An outgoing adjacency entry."""

    target_id: str
    relation: Relation


@dataclass
class PathFinder:
    """
    Path search over one schema snapshot. The adjacency map is built once and results are
    memoised per (source, target) pair, so an instance should live for a single request.
    """

    entities: Sequence[SchemaEntity]
    """All entities of the schema."""

    max_depth: int = DEFAULT_MAX_DEPTH
    """Maximum number of relation hops of a path."""

    entity_map: Dict[str, SchemaEntity] = field(init=False, default_factory=dict)
    """Entity id -> entity."""

    adjacency_map: Dict[str, List[Edge]] = field(init=False, default_factory=dict)
    """Entity id -> outgoing edges, in schema order."""

    _cache: Dict[Tuple[str, str], List[Path]] = field(init=False, default_factory=dict, repr=False)

    def __post_init__(self):
        self.entity_map = {entity.entity_id: entity for entity in self.entities}
        self.adjacency_map = self._build_adjacency_map()

    def _build_adjacency_map(self) -> Dict[str, List[Edge]]:
        by_name = {entity.name: entity for entity in self.entities}
        adjacency: Dict[str, List[Edge]] = {}
        for entity in self.entities:
            edges = adjacency.setdefault(entity.entity_id, [])
            for relation in entity.relations:
                target = by_name.get(relation.target) or self.entity_map.get(relation.target)
                if target is None:
                    logger.debug(
                        "Skipping relation %s.%s: unknown target %r",
                        entity.name,
                        relation.field,
                        relation.target,
                    )
                    continue
                edges.append(Edge(target_id=target.entity_id, relation=relation))
        return adjacency

    def find_paths(self, source: SchemaEntity, target: SchemaEntity) -> List[Path]:
        """
        Find the simple paths from ``source`` to ``target`` of at most ``max_depth`` hops.

        :param source: Starting entity
        :param target: Destination entity
        :return: Paths sorted by length; ties keep discovery order
        """
        key = (source.entity_id, target.entity_id)
        if key not in self._cache:
            self._cache[key] = self._search(source, target)
        return list(self._cache[key])

    def shortest_path(self, source: SchemaEntity, target: SchemaEntity) -> Optional[Path]:
        paths = self.find_paths(source, target)
        return paths[0] if paths else None

    def _search(self, source: SchemaEntity, target: SchemaEntity) -> List[Path]:
        source_id, target_id = source.entity_id, target.entity_id
        if source_id == target_id:
            return [Path(entities=(source,))]

        paths: List[Path] = []
        queue = deque([(source_id, (source_id,), (), frozenset({source_id}))])
        while queue:
            current_id, node_ids, relations, visited = queue.popleft()
            if len(node_ids) > self.max_depth:
                continue

            for edge in self.adjacency_map.get(current_id, []):
                if edge.target_id in visited:
                    continue
                next_ids = node_ids + (edge.target_id,)
                next_relations = relations + (edge.relation,)
                if edge.target_id == target_id:
                    paths.append(
                        Path(
                            entities=tuple(self.entity_map[node_id] for node_id in next_ids),
                            relations=next_relations,
                        )
                    )
                    continue
                queue.append((edge.target_id, next_ids, next_relations, visited | {edge.target_id}))

        paths.sort(key=lambda path: path.length)
        return paths


def find_paths(
    source: SchemaEntity,
    target: SchemaEntity,
    all_entities: Sequence[SchemaEntity],
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> List[Path]:
    """
    Find all paths between source and target entities.

    :param source: Starting entity
    :param target: Destination entity
    :param all_entities: All entities in the schema
    :param max_depth: Maximum path length
    :return: Paths sorted by length, shortest first
    """
    return PathFinder(all_entities, max_depth=max_depth).find_paths(source, target)


def format_path(path: Optional[Path]) -> str:
    """Render a path for display, e.g. ``User → Order → Product``."""
    if path is None or not path.entities:
        return ""
    return " → ".join(entity.name for entity in path.entities)
