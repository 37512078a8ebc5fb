"""Domain entities for the discovery request and the assembled context bundle."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from .intent import IntentResult
from .join_path import JoinPath
from .semantic import FormInContext
from .terminology import TerminologyMapping


@dataclass
class DiscoveryRequest:
    """Input to the discovery pipeline.

    ``cancel_event`` is the single cancellation token for the whole run.
    """

    customer_id: str
    question: str
    model_id: str | None = None
    cancel_event: asyncio.Event | None = None


@dataclass
class ContextBundleMetadata:
    """Audit metadata for one discovery run."""

    discovery_run_id: str
    timestamp: str  # ISO 8601
    duration_ms: int = 0
    version: str = "1.0"


@dataclass
class ContextBundle:
    """Structured output of the discovery pipeline, consumed by SQL generation."""

    customer_id: str
    question: str
    intent: IntentResult
    forms: list[FormInContext] = field(default_factory=list)
    terminology: list[TerminologyMapping] = field(default_factory=list)
    join_paths: list[JoinPath] = field(default_factory=list)
    overall_confidence: float = 0.0
    metadata: ContextBundleMetadata | None = None


@dataclass
class PipelineStepResult:
    """Observability record for one orchestrator step."""

    step: str
    success: bool
    duration_ms: int
    summary: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
