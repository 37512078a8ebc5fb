"""Abstract semantic searcher interface (port) over the semantic index."""

from abc import ABC, abstractmethod

from context_discovery.domain.entities import SemanticSearchResult


class SemanticSearcher(ABC):
    """Port for field lookup by semantic concept."""

    @abstractmethod
    async def search_fields(
        self,
        customer_id: str,
        concepts: list[str],
        *,
        min_confidence: float = 0.7,
        limit: int = 20,
        include_non_form: bool = True,
    ) -> list[SemanticSearchResult]:
        """Return form fields and non-form columns matching ``concepts``.

        Results are ranked by confidence, highest first.
        """
        ...
