"""Concrete repository for table relationships backed by SQLAlchemy."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from context_discovery.application.interfaces import RelationshipRepository
from context_discovery.domain.entities import RelationshipRow
from context_discovery.infrastructure.database.models import SemanticIndexRelationshipModel
from context_discovery.infrastructure.database.session import session_scope


class SQLAlchemyRelationshipRepository(RelationshipRepository):
    """Implements the RelationshipRepository port using SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _to_entity(self, model: SemanticIndexRelationshipModel) -> RelationshipRow:
        """Map ORM model → domain entity."""
        return RelationshipRow(
            source_table=model.source_table,
            source_column=model.source_column,
            target_table=model.target_table,
            target_column=model.target_column,
            fk_column_name=model.fk_column_name,
            relationship_type=model.relationship_type,
            cardinality=model.cardinality,
            confidence=model.confidence,
        )

    async def load_relationships(self, customer_id: str) -> list[RelationshipRow]:
        stmt = (
            select(SemanticIndexRelationshipModel)
            .where(SemanticIndexRelationshipModel.customer_id == customer_id)
            .order_by(SemanticIndexRelationshipModel.id)
        )
        async with session_scope(self._session_factory) as session:
            result = await session.execute(stmt)
            return [self._to_entity(row) for row in result.scalars().all()]
