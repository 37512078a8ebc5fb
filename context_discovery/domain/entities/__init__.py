from .chat_message import ChatMessage, TokenUsage, ChatCompletionResult
from .intent import (
    IntentType,
    IntentScope,
    TimeRange,
    IntentFilter,
    IntentResult,
)
from .semantic import SemanticSearchResult, FieldInContext, FormInContext
from .terminology import FormOptionCandidate, TerminologyMapping
from .join_path import RelationshipRow, RelationshipEdge, JoinCondition, JoinPath
from .filter_state import (
    FilterStateSourceType,
    ConflictResolution,
    FilterStateSource,
    FilterStateConflict,
    MergedFilterState,
    ResidualFilter,
)
from .context_bundle import (
    DiscoveryRequest,
    ContextBundleMetadata,
    ContextBundle,
    PipelineStepResult,
)

__all__ = [
    "ChatMessage",
    "TokenUsage",
    "ChatCompletionResult",
    "IntentType",
    "IntentScope",
    "TimeRange",
    "IntentFilter",
    "IntentResult",
    "SemanticSearchResult",
    "FieldInContext",
    "FormInContext",
    "FormOptionCandidate",
    "TerminologyMapping",
    "RelationshipRow",
    "RelationshipEdge",
    "JoinCondition",
    "JoinPath",
    "FilterStateSourceType",
    "ConflictResolution",
    "FilterStateSource",
    "FilterStateConflict",
    "MergedFilterState",
    "ResidualFilter",
    "DiscoveryRequest",
    "ContextBundleMetadata",
    "ContextBundle",
    "PipelineStepResult",
]
