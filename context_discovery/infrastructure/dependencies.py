"""Composition root: wires infrastructure to the application layer.

Every component is constructed once per container and shared across
requests. The caches live on the services that own them; the container only
registers them with the background sweeper.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from context_discovery.application.interfaces import (
    ChatProvider,
    DiscoveryAuditRepository,
    FormOptionRepository,
    IntentClassifier,
    RelationshipRepository,
    SemanticSearcher,
)
from context_discovery.application.services import (
    ContextAssembler,
    ContextDiscoveryService,
    JoinPathPlanner,
    LLMIntentClassifier,
    ParallelExecutor,
    TerminologyMapper,
)
from context_discovery.config import Settings, get_settings
from context_discovery.infrastructure.cache.ttl_cache import CacheSweeper, TTLCache
from context_discovery.infrastructure.database.repositories import (
    SQLAlchemyDiscoveryAuditRepository,
    SQLAlchemyFormOptionRepository,
    SQLAlchemyRelationshipRepository,
    SQLAlchemySemanticSearcher,
)
from context_discovery.infrastructure.database.session import (
    create_engine,
    create_session_factory,
)
from context_discovery.infrastructure.logging.log_config import setup_logging
from context_discovery.infrastructure.openrouter import OpenRouterClient

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryContainer:
    """Holds the long-lived components of one discovery deployment."""

    settings: Settings
    context_discovery_service: ContextDiscoveryService
    intent_classifier: IntentClassifier
    terminology_mapper: TerminologyMapper
    join_path_planner: JoinPathPlanner
    sweeper: CacheSweeper
    engine: AsyncEngine | None = None

    async def start(self) -> None:
        """Apply logging levels and start the cache sweeper."""
        setup_logging(self.settings)
        await self.sweeper.start()
        logger.info(
            "%s v%s started (env=%s)",
            self.settings.app_title,
            self.settings.app_version,
            self.settings.app_env,
        )

    async def stop(self) -> None:
        """Stop the sweeper and dispose the engine the container created."""
        await self.sweeper.stop()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("%s stopped", self.settings.app_title)

    async def __aenter__(self) -> "DiscoveryContainer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()


def build_container(
    settings: Settings | None = None,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    chat_provider: ChatProvider | None = None,
    intent_classifier: IntentClassifier | None = None,
    semantic_searcher: SemanticSearcher | None = None,
    form_option_repo: FormOptionRepository | None = None,
    relationship_repo: RelationshipRepository | None = None,
    audit_repo: DiscoveryAuditRepository | None = None,
) -> DiscoveryContainer:
    """Build a DiscoveryContainer.

    Any port passed in replaces the default adapter, which lets tests and
    embedding applications supply their own implementations. A database
    engine is only created when some SQLAlchemy adapter is still needed and
    no ``session_factory`` was given.
    """
    settings = settings or get_settings()

    engine: AsyncEngine | None = None
    needs_database = session_factory is None and (
        semantic_searcher is None
        or form_option_repo is None
        or relationship_repo is None
        or audit_repo is None
    )
    if needs_database:
        engine = create_engine(settings)
        session_factory = create_session_factory(engine)

    if semantic_searcher is None:
        semantic_searcher = SQLAlchemySemanticSearcher(session_factory)
    if form_option_repo is None:
        form_option_repo = SQLAlchemyFormOptionRepository(session_factory)
    if relationship_repo is None:
        relationship_repo = SQLAlchemyRelationshipRepository(session_factory)
    if audit_repo is None:
        audit_repo = SQLAlchemyDiscoveryAuditRepository(session_factory)

    terminology_cache = TTLCache(settings.terminology_cache_ttl_seconds, name="terminology")
    relationship_cache = TTLCache(settings.relationship_cache_ttl_seconds, name="relationships")
    intent_cache = TTLCache(settings.intent_cache_ttl_seconds, name="intent")

    terminology_mapper = TerminologyMapper(
        form_option_repo,
        min_confidence=settings.terminology_min_confidence,
        cache=terminology_cache,
    )
    join_path_planner = JoinPathPlanner(relationship_repo, cache=relationship_cache)

    if intent_classifier is None:
        if chat_provider is None:
            if not settings.openrouter_api_key.strip():
                logger.warning(
                    "OPENROUTER_API_KEY is not configured; intent classification will degrade."
                )
            chat_provider = OpenRouterClient.from_settings(settings)
        intent_classifier = LLMIntentClassifier(
            chat_provider,
            model=settings.intent_model,
            timeout_seconds=settings.intent_timeout_seconds,
            cache=intent_cache,
        )

    service = ContextDiscoveryService(
        intent_classifier=intent_classifier,
        semantic_searcher=semantic_searcher,
        terminology_mapper=terminology_mapper,
        join_path_planner=join_path_planner,
        context_assembler=ContextAssembler(default_version=settings.bundle_version),
        parallel_executor=ParallelExecutor(),
        audit_repo=audit_repo,
        parallel_timeout_ms=settings.parallel_timeout_ms,
        semantic_min_confidence=settings.semantic_min_confidence,
        semantic_limit=settings.semantic_limit,
        terminology_min_confidence=settings.terminology_min_confidence,
        enable_term_mapping=settings.enable_term_mapping,
        default_seed_table=settings.default_seed_table,
    )

    sweeper = CacheSweeper(
        [terminology_cache, relationship_cache, intent_cache],
        interval_seconds=settings.cache_sweep_interval_seconds,
    )

    return DiscoveryContainer(
        settings=settings,
        context_discovery_service=service,
        intent_classifier=intent_classifier,
        terminology_mapper=terminology_mapper,
        join_path_planner=join_path_planner,
        sweeper=sweeper,
        engine=engine,
    )
