"""Concrete repository for form option lookups backed by SQLAlchemy."""

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from context_discovery.application.interfaces import FormOptionRepository
from context_discovery.domain.entities import FormOptionCandidate
from context_discovery.domain.entities.terminology import (
    OPTION_LIMIT,
    coerce_confidence,
    combine_concept,
)
from context_discovery.infrastructure.database.models import (
    SemanticIndexFieldModel,
    SemanticIndexModel,
    SemanticIndexOptionModel,
)
from context_discovery.infrastructure.database.session import session_scope


class SQLAlchemyFormOptionRepository(FormOptionRepository):
    """Implements the FormOptionRepository port over the semantic index tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def load_form_options(
        self,
        customer_id: str,
        patterns: list[str],
        *,
        option_code: str | None = None,
        field_name: str | None = None,
        limit: int = OPTION_LIMIT,
    ) -> list[FormOptionCandidate]:
        opt = SemanticIndexOptionModel
        fld = SemanticIndexFieldModel

        matchers = []
        for pattern in patterns:
            matchers.append(func.coalesce(opt.option_value, "").ilike(pattern))
            matchers.append(func.coalesce(opt.semantic_category, "").ilike(pattern))
        if option_code:
            matchers.append(func.lower(func.coalesce(opt.option_code, "")) == option_code.lower())
        if not matchers:
            return []

        stmt = (
            select(
                opt.option_value,
                opt.option_code,
                opt.semantic_category,
                opt.confidence,
                fld.field_name,
                fld.semantic_concept,
                SemanticIndexModel.form_name,
            )
            .join(fld, opt.semantic_index_field_id == fld.id)
            .join(SemanticIndexModel, fld.semantic_index_id == SemanticIndexModel.id)
            .where(SemanticIndexModel.customer_id == customer_id)
            .where(or_(*matchers))
        )
        if field_name and field_name.strip():
            wanted = field_name.strip().lower().replace(" ", "_")
            stmt = stmt.where(func.lower(func.replace(fld.field_name, " ", "_")) == wanted)
        stmt = stmt.order_by(opt.confidence.desc().nulls_last(), opt.option_value.asc()).limit(
            min(limit, OPTION_LIMIT)
        )

        async with session_scope(self._session_factory) as session:
            rows = (await session.execute(stmt)).all()

        return [self._to_entity(row) for row in rows]

    @staticmethod
    def _to_entity(row) -> FormOptionCandidate:
        """Map a result row → domain entity."""
        return FormOptionCandidate(
            option_value=(row.option_value or "").strip(),
            option_code=row.option_code,
            field_name=(row.field_name or "").strip(),
            form_name=(row.form_name or "").strip() or None,
            semantic_concept=combine_concept(row.semantic_concept, row.semantic_category),
            confidence=coerce_confidence(row.confidence),
        )
