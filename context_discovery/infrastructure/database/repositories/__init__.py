from .form_option_repository import SQLAlchemyFormOptionRepository
from .relationship_repository import SQLAlchemyRelationshipRepository
from .semantic_searcher import SQLAlchemySemanticSearcher
from .discovery_audit_repository import SQLAlchemyDiscoveryAuditRepository

__all__ = [
    "SQLAlchemyFormOptionRepository",
    "SQLAlchemyRelationshipRepository",
    "SQLAlchemySemanticSearcher",
    "SQLAlchemyDiscoveryAuditRepository",
]
