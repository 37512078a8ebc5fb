"""Abstract repository interface (port) for form option lookups."""

from abc import ABC, abstractmethod

from context_discovery.domain.entities import FormOptionCandidate


class FormOptionRepository(ABC):
    """Port for candidate option values used by terminology mapping."""

    @abstractmethod
    async def load_form_options(
        self,
        customer_id: str,
        patterns: list[str],
        *,
        option_code: str | None = None,
        field_name: str | None = None,
        limit: int = 50,
    ) -> list[FormOptionCandidate]:
        """Return option rows whose value matches any of ``patterns``.

        ``patterns`` are SQL ``LIKE`` patterns matched case-insensitively.
        ``option_code`` and ``field_name`` narrow the lookup when given.
        """
        ...
