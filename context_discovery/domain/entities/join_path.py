"""Domain entities for the table relationship graph and planned join paths."""

from dataclasses import dataclass, field


@dataclass
class RelationshipRow:
    """Raw relationship record as stored in the semantic index.

    ``confidence`` may arrive as a number, a numeric string, or ``None``.
    """

    source_table: str
    source_column: str
    target_table: str
    target_column: str
    fk_column_name: str | None = None
    relationship_type: str | None = None
    cardinality: str | None = None  # "1:1" | "1:N" | "N:1" | "N:N"
    confidence: float | str | None = None


@dataclass
class RelationshipEdge:
    """Directed edge in the join graph."""

    from_table: str
    to_table: str
    source_column: str
    target_column: str
    cardinality: str
    confidence: float
    fk_column_name: str | None = None


@dataclass
class JoinCondition:
    """SQL join between two adjacent tables of a path."""

    left_table: str
    right_table: str
    condition: str  # e.g. "rpt.Wound.patientFk = rpt.Patient.id"
    cardinality: str


@dataclass
class JoinPath:
    """One way of joining a sequence of tables.

    ``confidence`` is the weakest edge on the path.
    """

    path: list[str]  # entity names, e.g. ["Patient", "Wound"]
    tables: list[str]
    joins: list[JoinCondition] = field(default_factory=list)
    confidence: float = 1.0
    is_preferred: bool = False
