"""Abstract repository interface (port) for discovery run audit records."""

from abc import ABC, abstractmethod

from context_discovery.domain.entities import ContextBundle


class DiscoveryAuditRepository(ABC):
    """Port for persisting one record per completed discovery run."""

    @abstractmethod
    async def persist(
        self,
        discovery_run_id: str,
        customer_id: str,
        question: str,
        bundle: ContextBundle,
        duration_ms: int,
    ) -> None:
        ...
