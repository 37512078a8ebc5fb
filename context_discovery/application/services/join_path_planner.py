"""Join path planner: connects the tables a question needs.

Builds a directed adjacency graph from the tenant's relationship rows and
runs a multi-source breadth-first search from the already-connected tables
to each remaining target. Every shortest path is kept; the best one is
committed as preferred and its tables join the connected set before the
next target is searched (a greedy Steiner-tree approximation).
"""

import logging
from collections import deque
from dataclasses import dataclass, field

from context_discovery.application.interfaces import RelationshipRepository
from context_discovery.domain.entities.terminology import coerce_confidence
from context_discovery.domain.entities import (
    JoinCondition,
    JoinPath,
    RelationshipEdge,
    RelationshipRow,
)
from context_discovery.domain.exceptions import DiscoveryValidationError
from context_discovery.infrastructure.cache.ttl_cache import MISSING, TTLCache

logger = logging.getLogger(__name__)

DEFAULT_EDGE_CONFIDENCE = 1.0
DEFAULT_CARDINALITY = "1:N"
DEFAULT_CACHE_TTL_SECONDS = 300

Graph = dict[str, list[RelationshipEdge]]


@dataclass
class EdgePath:
    """Sequence of edges from ``start`` to ``end``."""

    start: str
    end: str
    edges: list[RelationshipEdge] = field(default_factory=list)


class JoinPathPlanner:
    """Plans join paths between required tables for one tenant."""

    def __init__(
        self,
        relationship_repo: RelationshipRepository,
        *,
        cache: TTLCache[list[RelationshipRow]] | None = None,
    ):
        self._repo = relationship_repo
        self.cache: TTLCache[list[RelationshipRow]] = (
            cache if cache is not None else TTLCache(DEFAULT_CACHE_TTL_SECONDS, name="relationships")
        )

    async def plan_join_paths(
        self,
        required_tables: list[str],
        customer_id: str,
        *,
        prefer_direct_joins: bool = True,
        detect_cycles: bool = True,
    ) -> list[JoinPath]:
        """Return join paths connecting ``required_tables``.

        Unreachable tables are logged and skipped. Paths are deduplicated by
        table sequence and ordered preferred first, then by join count,
        then by confidence.

        Raises:
            DiscoveryValidationError: If ``customer_id`` is blank.
        """
        if not customer_id or not customer_id.strip():
            raise DiscoveryValidationError("customer_id")

        tables: list[str] = []
        for table in required_tables or []:
            table = (table or "").strip()
            if table and table not in tables:
                tables.append(table)
        if len(tables) <= 1:
            return []

        rows = await self._load_relationships(customer_id)
        if not rows:
            logger.warning("No relationships found for customer %s", customer_id)
            return []

        graph = build_graph(rows)
        seeds = [t for t in tables if t in graph]
        if not seeds:
            logger.warning(
                "Required tables %s are missing from the relationship graph",
                ", ".join(tables),
            )
            return []

        connected: list[str] = [seeds[0]]
        planned: dict[tuple[str, ...], JoinPath] = {}

        for target in tables:
            if target in connected:
                continue
            start_nodes = [t for t in connected if t in graph]
            edge_paths = find_shortest_paths(start_nodes, target, graph, detect_cycles)
            if not edge_paths:
                logger.warning(
                    "Unable to find join path from %s to %s",
                    ", ".join(start_nodes),
                    target,
                )
                continue

            candidates = [to_join_path(p) for p in edge_paths]
            if prefer_direct_joins:
                candidates.sort(key=lambda p: (len(p.joins), -p.confidence))
            else:
                candidates.sort(key=lambda p: (-p.confidence, len(p.joins)))

            preferred = candidates[0]
            preferred.is_preferred = True
            for table in preferred.tables:
                if table not in connected:
                    connected.append(table)

            for path in candidates:
                planned.setdefault(tuple(path.tables), path)

        return sorted(
            planned.values(),
            key=lambda p: (not p.is_preferred, len(p.joins), -p.confidence),
        )

    async def _load_relationships(self, customer_id: str) -> list[RelationshipRow]:
        cached = self.cache.get(customer_id)
        if cached is not MISSING:
            return cached
        rows = await self._repo.load_relationships(customer_id)
        self.cache.set(customer_id, rows)
        return rows


# ── Graph helpers ────────────────────────────────────────────────────

def build_graph(rows: list[RelationshipRow]) -> Graph:
    """Build a directed adjacency list, skipping rows without usable columns."""
    graph: Graph = {}
    for row in rows:
        edge = _build_edge(row)
        if edge is not None:
            graph.setdefault(edge.from_table, []).append(edge)
    return graph


def _build_edge(row: RelationshipRow) -> RelationshipEdge | None:
    if not row.source_table or not row.target_table:
        return None
    source_column = (row.source_column or "").strip()
    target_column = (row.target_column or "").strip()
    if not _split_columns(source_column) or not _split_columns(target_column):
        return None
    return RelationshipEdge(
        from_table=row.source_table,
        to_table=row.target_table,
        source_column=source_column,
        target_column=target_column,
        fk_column_name=row.fk_column_name,
        cardinality=row.cardinality or DEFAULT_CARDINALITY,
        confidence=coerce_confidence(row.confidence, default=DEFAULT_EDGE_CONFIDENCE),
    )


def find_shortest_paths(
    start_nodes: list[str],
    target: str,
    graph: Graph,
    detect_cycles: bool = True,
) -> list[EdgePath]:
    """Collect every shortest path from any start node to ``target``.

    Paths longer than the shortest found so far are pruned, and a node
    reached earlier at a smaller depth is not expanded again.
    """
    if target in start_nodes:
        return []

    queue: deque[tuple[str, str, list[RelationshipEdge], frozenset[str]]] = deque()
    best_depth: dict[str, int] = {}
    for start in start_nodes:
        queue.append((start, start, [], frozenset([start])))
        best_depth[start] = 0

    results: list[EdgePath] = []
    shortest: int | None = None

    while queue:
        start, node, edges, visited = queue.popleft()
        for edge in graph.get(node, []):
            depth = len(edges) + 1
            if shortest is not None and depth > shortest:
                continue
            next_node = edge.to_table
            if detect_cycles and next_node in visited:
                continue
            next_edges = [*edges, edge]

            if next_node == target:
                shortest = depth
                results.append(EdgePath(start=start, end=target, edges=next_edges))
                continue

            seen = best_depth.get(next_node)
            if seen is not None and seen < depth:
                continue
            best_depth[next_node] = depth
            queue.append((start, next_node, next_edges, visited | {next_node}))

    return results


def to_join_path(edge_path: EdgePath) -> JoinPath:
    """Turn an edge path into tables, join conditions and a weakest-link confidence."""
    tables = [edge_path.start]
    joins: list[JoinCondition] = []
    for edge in edge_path.edges:
        tables.append(edge.to_table)
        joins.append(
            JoinCondition(
                left_table=edge.from_table,
                right_table=edge.to_table,
                condition=" AND ".join(build_join_conditions(edge)),
                cardinality=edge.cardinality,
            )
        )
    confidence = min((e.confidence for e in edge_path.edges), default=DEFAULT_EDGE_CONFIDENCE)
    return JoinPath(
        path=[table_to_entity(t) for t in tables],
        tables=tables,
        joins=joins,
        confidence=confidence,
    )


def build_join_conditions(edge: RelationshipEdge) -> list[str]:
    """Pair composite key columns and qualify bare names with their table."""
    left = _split_columns(edge.source_column)
    right = _split_columns(edge.target_column)
    return [
        f"{_qualify(edge.from_table, l)} = {_qualify(edge.to_table, r)}"
        for l, r in zip(left, right)
    ]


def table_to_entity(table: str) -> str:
    """``rpt.Wound_Assessment`` → ``Wound Assessment``."""
    if not table:
        return table
    raw = table.split(".")[-1]
    return raw.replace("_", " ") if raw else table


def _split_columns(columns: str) -> list[str]:
    return [c.strip() for c in columns.split(",") if c.strip()]


def _qualify(table: str, column: str) -> str:
    return column if "." in column else f"{table}.{column}"
