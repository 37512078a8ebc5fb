from .parallel_executor import (
    ParallelExecutor,
    ParallelTask,
    ParallelTaskResult,
    ParallelExecutionResult,
)
from .terminology_mapper import TerminologyMapper
from .filter_state_merger import (
    FilterStateMerger,
    merge_filter_states,
    filter_residuals_against_merged,
)
from .join_path_planner import JoinPathPlanner
from .context_assembler import ContextAssembler
from .intent_classifier import LLMIntentClassifier
from .context_discovery_service import ContextDiscoveryService

__all__ = [
    "ParallelExecutor",
    "ParallelTask",
    "ParallelTaskResult",
    "ParallelExecutionResult",
    "TerminologyMapper",
    "FilterStateMerger",
    "merge_filter_states",
    "filter_residuals_against_merged",
    "JoinPathPlanner",
    "ContextAssembler",
    "LLMIntentClassifier",
    "ContextDiscoveryService",
]
