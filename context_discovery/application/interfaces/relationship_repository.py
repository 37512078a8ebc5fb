"""Abstract repository interface (port) for table relationships."""

from abc import ABC, abstractmethod

from context_discovery.domain.entities import RelationshipRow


class RelationshipRepository(ABC):
    """Port for the per-tenant relationship metadata used by join planning."""

    @abstractmethod
    async def load_relationships(self, customer_id: str) -> list[RelationshipRow]:
        """Return every known table relationship for ``customer_id``."""
        ...
