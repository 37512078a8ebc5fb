"""Unit tests for the JoinPathPlanner: graph search, preference and caching."""

import pytest

from context_discovery.application.interfaces import RelationshipRepository
from context_discovery.application.services.join_path_planner import (
    JoinPathPlanner,
    build_graph,
    build_join_conditions,
    find_shortest_paths,
    table_to_entity,
)
from context_discovery.domain.entities import JoinPath, RelationshipEdge, RelationshipRow
from context_discovery.domain.exceptions import DiscoveryValidationError


# ── Fakes ────────────────────────────────────────────────────────────


class FakeRelationshipRepository(RelationshipRepository):
    """Returns canned relationship rows and counts lookups."""

    def __init__(self, rows: list[RelationshipRow] | None = None):
        self._rows = rows or []
        self.calls = 0

    async def load_relationships(self, customer_id: str) -> list[RelationshipRow]:
        self.calls += 1
        return list(self._rows)


def _rel(source: str, target: str, *, source_column: str = "id", target_column: str = "fk",
         confidence=1.0, cardinality: str | None = "1:N") -> RelationshipRow:
    return RelationshipRow(
        source_table=source,
        source_column=source_column,
        target_table=target,
        target_column=target_column,
        cardinality=cardinality,
        confidence=confidence,
    )


def _assert_shape(path: JoinPath) -> None:
    assert len(path.joins) == len(path.tables) - 1
    assert len(path.path) == len(path.tables)
    assert 0.0 <= path.confidence <= 1.0
    for join, (left, right) in zip(path.joins, zip(path.tables, path.tables[1:])):
        assert join.left_table == left
        assert join.right_table == right


CHAIN = [
    _rel("rpt.Patient", "rpt.Wound", target_column="patientFk"),
    _rel("rpt.Wound", "rpt.Assessment", target_column="woundFk"),
]


# ── plan_join_paths ──────────────────────────────────────────────────


class TestPlanJoinPaths:

    @pytest.mark.asyncio
    async def test_two_hop_chain(self):
        planner = JoinPathPlanner(FakeRelationshipRepository(CHAIN))

        paths = await planner.plan_join_paths(["rpt.Patient", "rpt.Assessment"], "cust-1")

        assert len(paths) == 1
        [path] = paths
        assert path.tables == ["rpt.Patient", "rpt.Wound", "rpt.Assessment"]
        assert path.path == ["Patient", "Wound", "Assessment"]
        assert len(path.joins) == 2
        assert path.confidence == 1.0
        assert path.is_preferred is True
        assert path.joins[0].condition == "rpt.Patient.id = rpt.Wound.patientFk"
        assert path.joins[0].cardinality == "1:N"
        _assert_shape(path)

    @pytest.mark.asyncio
    async def test_all_shortest_paths_with_one_preferred(self):
        rows = [
            _rel("A", "B", confidence=0.9),
            _rel("B", "D", confidence=0.9),
            _rel("A", "C", confidence=0.6),
            _rel("C", "D", confidence=1.0),
            _rel("A", "E"),
            _rel("E", "F"),
            _rel("F", "D"),
        ]
        planner = JoinPathPlanner(FakeRelationshipRepository(rows))

        paths = await planner.plan_join_paths(["A", "D"], "cust-1")

        assert [p.tables for p in paths] == [["A", "B", "D"], ["A", "C", "D"]]
        assert [p.is_preferred for p in paths] == [True, False]
        assert paths[0].confidence == pytest.approx(0.9)
        assert paths[1].confidence == pytest.approx(0.6)
        for path in paths:
            _assert_shape(path)

    @pytest.mark.asyncio
    async def test_connected_tables_become_start_nodes(self):
        rows = [
            _rel("rpt.Patient", "rpt.Wound"),
            _rel("rpt.Wound", "rpt.Assessment"),
            _rel("rpt.Wound", "rpt.Measurement"),
        ]
        planner = JoinPathPlanner(FakeRelationshipRepository(rows))

        paths = await planner.plan_join_paths(
            ["rpt.Patient", "rpt.Assessment", "rpt.Measurement"], "cust-1"
        )

        preferred = [p for p in paths if p.is_preferred]
        assert [p.tables for p in preferred] == [
            ["rpt.Wound", "rpt.Measurement"],
            ["rpt.Patient", "rpt.Wound", "rpt.Assessment"],
        ]

    @pytest.mark.asyncio
    async def test_unreachable_target_is_skipped(self):
        rows = CHAIN + [_rel("rpt.Clinic", "rpt.Unit")]
        planner = JoinPathPlanner(FakeRelationshipRepository(rows))

        paths = await planner.plan_join_paths(["rpt.Patient", "rpt.Unit", "rpt.Wound"], "cust-1")

        assert [p.tables for p in paths] == [["rpt.Patient", "rpt.Wound"]]

    @pytest.mark.asyncio
    async def test_single_table_needs_no_join(self):
        repo = FakeRelationshipRepository(CHAIN)
        planner = JoinPathPlanner(repo)

        assert await planner.plan_join_paths(["rpt.Patient", " rpt.Patient "], "cust-1") == []
        assert repo.calls == 0

    @pytest.mark.asyncio
    async def test_no_relationships(self):
        planner = JoinPathPlanner(FakeRelationshipRepository([]))
        assert await planner.plan_join_paths(["A", "B"], "cust-1") == []

    @pytest.mark.asyncio
    async def test_tables_missing_from_graph(self):
        planner = JoinPathPlanner(FakeRelationshipRepository(CHAIN))
        assert await planner.plan_join_paths(["X", "Y"], "cust-1") == []

    @pytest.mark.asyncio
    async def test_relationships_cached_per_customer(self):
        repo = FakeRelationshipRepository(CHAIN)
        planner = JoinPathPlanner(repo)

        await planner.plan_join_paths(["rpt.Patient", "rpt.Wound"], "cust-1")
        await planner.plan_join_paths(["rpt.Patient", "rpt.Assessment"], "cust-1")
        await planner.plan_join_paths(["rpt.Patient", "rpt.Wound"], "cust-2")

        assert repo.calls == 2

    @pytest.mark.asyncio
    async def test_blank_customer_raises(self):
        planner = JoinPathPlanner(FakeRelationshipRepository(CHAIN))
        with pytest.raises(DiscoveryValidationError):
            await planner.plan_join_paths(["A", "B"], "")

    @pytest.mark.asyncio
    async def test_confidence_preference_when_direct_joins_not_preferred(self):
        rows = [
            _rel("A", "B", confidence=0.5),
            _rel("B", "C", confidence=0.5),
            _rel("A", "D", confidence=0.9),
            _rel("D", "C", confidence=0.9),
        ]
        planner = JoinPathPlanner(FakeRelationshipRepository(rows))

        paths = await planner.plan_join_paths(["A", "C"], "cust-1", prefer_direct_joins=False)

        assert paths[0].tables == ["A", "D", "C"]
        assert paths[0].is_preferred


# ── Graph helpers ────────────────────────────────────────────────────


class TestGraphHelpers:

    def test_build_graph_skips_rows_without_columns(self):
        graph = build_graph(
            [
                _rel("A", "B"),
                _rel("A", "C", source_column=" "),
                _rel("B", "C", confidence="0.4", cardinality=None),
            ]
        )

        assert [e.to_table for e in graph["A"]] == ["B"]
        edge = graph["B"][0]
        assert edge.confidence == pytest.approx(0.4)
        assert edge.cardinality == "1:N"

    def test_unparsable_confidence_defaults_to_one(self):
        graph = build_graph([_rel("A", "B", confidence="high")])
        assert graph["A"][0].confidence == 1.0

    def test_cycles_are_not_followed(self):
        graph = build_graph([_rel("A", "B"), _rel("B", "A"), _rel("B", "C")])
        paths = find_shortest_paths(["A"], "C", graph)
        assert [[e.to_table for e in p.edges] for p in paths] == [["B", "C"]]

    def test_target_already_connected(self):
        graph = build_graph(CHAIN)
        assert find_shortest_paths(["rpt.Patient"], "rpt.Patient", graph) == []

    def test_composite_key_conditions(self):
        edge = RelationshipEdge(
            from_table="rpt.Wound",
            to_table="rpt.Note",
            source_column="id, rpt.Wound.customerId",
            target_column="woundFk,customerId",
            cardinality="1:N",
            confidence=1.0,
        )
        assert build_join_conditions(edge) == [
            "rpt.Wound.id = rpt.Note.woundFk",
            "rpt.Wound.customerId = rpt.Note.customerId",
        ]

    @pytest.mark.parametrize(
        "table, expected",
        [("rpt.Wound_Assessment", "Wound Assessment"), ("Patient", "Patient"), ("", "")],
    )
    def test_table_to_entity(self, table, expected):
        assert table_to_entity(table) == expected
