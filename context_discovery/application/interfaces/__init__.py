from .chat_provider import ChatProvider
from .intent_classifier import IntentClassifier
from .semantic_searcher import SemanticSearcher
from .relationship_repository import RelationshipRepository
from .form_option_repository import FormOptionRepository
from .discovery_audit_repository import DiscoveryAuditRepository

__all__ = [
    "ChatProvider",
    "IntentClassifier",
    "SemanticSearcher",
    "RelationshipRepository",
    "FormOptionRepository",
    "DiscoveryAuditRepository",
]
