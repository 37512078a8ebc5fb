"""Abstract intent classifier interface (port)."""

import asyncio
from abc import ABC, abstractmethod

from context_discovery.domain.entities import IntentResult


class IntentClassifier(ABC):
    """Port — turns a question into a structured IntentResult.

    Implementations must not raise on recoverable failures; they return a
    low-confidence default intent instead.
    """

    @abstractmethod
    async def classify(
        self,
        question: str,
        customer_id: str,
        *,
        model_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> IntentResult:
        ...
