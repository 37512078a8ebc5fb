"""SQLAlchemy ORM models for the per-tenant semantic index.

The index describes forms, their fields and option values, non-form
columns and the relationships between reporting tables. It is written by
the indexing jobs and only read by discovery.
"""

from sqlalchemy import Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from context_discovery.infrastructure.database.base import Base


class SemanticIndexModel(Base):
    """One indexed form of a customer."""

    __tablename__ = "semantic_index"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    form_name: Mapped[str] = mapped_column(String(255), nullable=False)

    fields: Mapped[list["SemanticIndexFieldModel"]] = relationship(
        back_populates="form",
        cascade="all, delete-orphan",
    )


class SemanticIndexFieldModel(Base):
    """A form field tagged with a semantic concept."""

    __tablename__ = "semantic_index_fields"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    semantic_index_id: Mapped[str] = mapped_column(
        ForeignKey("semantic_index.id", ondelete="CASCADE"), nullable=False, index=True
    )
    field_name: Mapped[str] = mapped_column(String(255), nullable=False)
    semantic_concept: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    data_type: Mapped[str] = mapped_column(String(50), default="text", nullable=False)
    confidence: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    form: Mapped[SemanticIndexModel] = relationship(back_populates="fields")
    options: Mapped[list["SemanticIndexOptionModel"]] = relationship(
        back_populates="field",
        cascade="all, delete-orphan",
    )


class SemanticIndexOptionModel(Base):
    """A selectable option value of a form field."""

    __tablename__ = "semantic_index_options"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    semantic_index_field_id: Mapped[str] = mapped_column(
        ForeignKey("semantic_index_fields.id", ondelete="CASCADE"), nullable=False, index=True
    )
    option_value: Mapped[str | None] = mapped_column(String(500), nullable=True)
    option_code: Mapped[str | None] = mapped_column(String(255), nullable=True)
    semantic_category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)

    field: Mapped[SemanticIndexFieldModel] = relationship(back_populates="options")


class SemanticIndexNonFormModel(Base):
    """A reporting-table column tagged with a semantic concept."""

    __tablename__ = "semantic_index_nonform"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    table_name: Mapped[str] = mapped_column(String(255), nullable=False)
    column_name: Mapped[str] = mapped_column(String(255), nullable=False)
    semantic_concept: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    data_type: Mapped[str] = mapped_column(String(50), default="text", nullable=False)
    confidence: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)


class SemanticIndexRelationshipModel(Base):
    """Foreign-key style link between two reporting tables."""

    __tablename__ = "semantic_index_relationships"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    source_table: Mapped[str] = mapped_column(String(255), nullable=False)
    source_column: Mapped[str] = mapped_column(Text, nullable=False)  # comma-separated for composite keys
    target_table: Mapped[str] = mapped_column(String(255), nullable=False)
    target_column: Mapped[str] = mapped_column(Text, nullable=False)
    fk_column_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    relationship_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    cardinality: Mapped[str | None] = mapped_column(String(10), nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
