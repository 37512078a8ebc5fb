from .semantic_index_models import (
    SemanticIndexModel,
    SemanticIndexFieldModel,
    SemanticIndexOptionModel,
    SemanticIndexNonFormModel,
    SemanticIndexRelationshipModel,
)
from .discovery_run import ContextDiscoveryRunModel

__all__ = [
    "SemanticIndexModel",
    "SemanticIndexFieldModel",
    "SemanticIndexOptionModel",
    "SemanticIndexNonFormModel",
    "SemanticIndexRelationshipModel",
    "ContextDiscoveryRunModel",
]
