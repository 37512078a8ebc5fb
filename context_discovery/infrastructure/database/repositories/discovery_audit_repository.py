"""Concrete repository for discovery run audit records backed by SQLAlchemy."""

import json
from dataclasses import asdict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from context_discovery.application.interfaces import DiscoveryAuditRepository
from context_discovery.domain.entities import ContextBundle
from context_discovery.infrastructure.database.models import ContextDiscoveryRunModel
from context_discovery.infrastructure.database.session import session_scope


class SQLAlchemyDiscoveryAuditRepository(DiscoveryAuditRepository):
    """Implements the DiscoveryAuditRepository port using SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _to_model(
        self,
        discovery_run_id: str,
        customer_id: str,
        question: str,
        bundle: ContextBundle,
        duration_ms: int,
    ) -> ContextDiscoveryRunModel:
        """Map domain bundle → ORM model."""
        return ContextDiscoveryRunModel(
            id=discovery_run_id,
            customer_id=customer_id,
            question=question,
            intent_type=bundle.intent.type.value,
            overall_confidence=bundle.overall_confidence,
            context_bundle=json.dumps(asdict(bundle), ensure_ascii=False, default=str),
            duration_ms=duration_ms,
        )

    async def persist(
        self,
        discovery_run_id: str,
        customer_id: str,
        question: str,
        bundle: ContextBundle,
        duration_ms: int,
    ) -> None:
        async with session_scope(self._session_factory) as session:
            session.add(
                self._to_model(discovery_run_id, customer_id, question, bundle, duration_ms)
            )
