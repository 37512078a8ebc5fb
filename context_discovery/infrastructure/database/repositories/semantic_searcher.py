"""Concept-based semantic searcher over the semantic index tables.

Matches the requested concepts against the stored ``semantic_concept`` of
form fields and non-form columns (case-insensitive exact match). No
embeddings are involved.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from context_discovery.application.interfaces import SemanticSearcher
from context_discovery.domain.entities import SemanticSearchResult
from context_discovery.infrastructure.database.models import (
    SemanticIndexFieldModel,
    SemanticIndexModel,
    SemanticIndexNonFormModel,
)
from context_discovery.infrastructure.database.session import session_scope

MAX_LIMIT = 50


class SQLAlchemySemanticSearcher(SemanticSearcher):
    """Implements the SemanticSearcher port using SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def search_fields(
        self,
        customer_id: str,
        concepts: list[str],
        *,
        min_confidence: float = 0.7,
        limit: int = 20,
        include_non_form: bool = True,
    ) -> list[SemanticSearchResult]:
        limit = max(0, min(limit, MAX_LIMIT))
        wanted = sorted({c.strip().lower() for c in concepts if c and c.strip()})
        if not wanted or limit == 0:
            return []

        fld = SemanticIndexFieldModel
        form_stmt = (
            select(fld, SemanticIndexModel.form_name)
            .join(SemanticIndexModel, fld.semantic_index_id == SemanticIndexModel.id)
            .where(SemanticIndexModel.customer_id == customer_id)
            .where(fld.confidence >= min_confidence)
            .where(func.lower(fld.semantic_concept).in_(wanted))
            .order_by(fld.confidence.desc(), fld.field_name)
            .limit(limit)
        )

        results: list[SemanticSearchResult] = []
        async with session_scope(self._session_factory) as session:
            for field, form_name in (await session.execute(form_stmt)).all():
                results.append(
                    SemanticSearchResult(
                        source="form",
                        id=field.id,
                        field_name=field.field_name,
                        form_name=form_name,
                        semantic_concept=field.semantic_concept,
                        data_type=field.data_type,
                        confidence=field.confidence,
                    )
                )

            if include_non_form:
                col = SemanticIndexNonFormModel
                non_form_stmt = (
                    select(col)
                    .where(col.customer_id == customer_id)
                    .where(col.confidence >= min_confidence)
                    .where(func.lower(col.semantic_concept).in_(wanted))
                    .order_by(col.confidence.desc(), col.table_name, col.column_name)
                    .limit(limit)
                )
                for column in (await session.execute(non_form_stmt)).scalars().all():
                    results.append(
                        SemanticSearchResult(
                            source="non_form",
                            id=column.id,
                            field_name=column.column_name,
                            table_name=column.table_name,
                            semantic_concept=column.semantic_concept,
                            data_type=column.data_type,
                            confidence=column.confidence,
                        )
                    )

        results.sort(key=lambda r: r.confidence, reverse=True)
        return results[:limit]
