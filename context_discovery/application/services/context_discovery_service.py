"""Context discovery service: orchestrates the discovery pipeline.

Pipeline stages:
  1. Intent classification    – never fatal, degrades to a default intent
  2. Filter value mapping     – resolve filter phrases to stored option values
  3. Parallel bundle          – semantic search + terminology mapping, one deadline
  4. Join path planning       – only when more than one table is required
  5. Context assembly         – scored ContextBundle
  6. Audit                    – best-effort persistence of the run

Every stage records a PipelineStepResult. Any failure after stage 1 aborts
the run with a PipelineStepError carrying the step trail; a partial bundle
is never returned.
"""

import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, TypeVar

from context_discovery.application.interfaces import (
    DiscoveryAuditRepository,
    IntentClassifier,
    SemanticSearcher,
)
from context_discovery.application.services.context_assembler import ContextAssembler
from context_discovery.application.services.intent_classifier import degraded_intent
from context_discovery.application.services.join_path_planner import JoinPathPlanner
from context_discovery.application.services.parallel_executor import (
    ParallelExecutor,
    ParallelTask,
)
from context_discovery.application.services.terminology_mapper import TerminologyMapper
from context_discovery.domain.entities import (
    ContextBundle,
    DiscoveryRequest,
    FieldInContext,
    FormInContext,
    IntentResult,
    JoinPath,
    PipelineStepResult,
    SemanticSearchResult,
    TerminologyMapping,
)
from context_discovery.domain.exceptions import DiscoveryValidationError, PipelineStepError
from context_discovery.infrastructure.logging.colored_logger import PipelineLogger, PipelineStage

logger = logging.getLogger(__name__)
plog = PipelineLogger("ContextDiscoveryService")

T = TypeVar("T")

FORM_REASON = "Contains relevant fields for the discovery query"


class ContextDiscoveryService:
    """Application service for the end-to-end discovery pipeline."""

    def __init__(
        self,
        intent_classifier: IntentClassifier,
        semantic_searcher: SemanticSearcher,
        terminology_mapper: TerminologyMapper,
        join_path_planner: JoinPathPlanner,
        context_assembler: ContextAssembler,
        parallel_executor: ParallelExecutor,
        audit_repo: DiscoveryAuditRepository | None = None,
        *,
        parallel_timeout_ms: int = 15000,
        semantic_min_confidence: float = 0.7,
        semantic_limit: int = 20,
        terminology_min_confidence: float = 0.7,
        enable_term_mapping: bool = False,
        default_seed_table: str = "rpt.Patient",
    ):
        self._classifier = intent_classifier
        self._searcher = semantic_searcher
        self._mapper = terminology_mapper
        self._planner = join_path_planner
        self._assembler = context_assembler
        self._executor = parallel_executor
        self._audit_repo = audit_repo
        self._parallel_timeout_ms = parallel_timeout_ms
        self._semantic_min_confidence = semantic_min_confidence
        self._semantic_limit = semantic_limit
        self._terminology_min_confidence = terminology_min_confidence
        self._enable_term_mapping = enable_term_mapping
        self._default_seed_table = default_seed_table

    async def discover_context(self, request: DiscoveryRequest) -> ContextBundle:
        """Run the full pipeline for one question.

        Raises:
            DiscoveryValidationError: If ``customer_id`` or ``question`` is blank.
            PipelineStepError: If any stage after intent classification fails.
        """
        if not request.customer_id or not request.customer_id.strip():
            raise DiscoveryValidationError("customer_id")
        if not request.question or not request.question.strip():
            raise DiscoveryValidationError("question")

        customer_id = request.customer_id
        run_id = str(uuid.uuid4())
        started = time.perf_counter()
        trail: list[PipelineStepResult] = []

        plog.separator(f"Discovery {run_id[:8]}")
        plog.step_start(
            PipelineStage.PIPELINE,
            "Starting context discovery",
            customer=customer_id,
            question=_clip(request.question, 100),
        )

        # ── Stage 1: Intent classification ─────────────────────────────
        intent = await self._classify(request, trail)

        # ── Stage 2: Filter value mapping ──────────────────────────────
        if intent.filters:
            filters = await self._run_step(
                trail,
                "filter_mapping",
                PipelineStage.FILTER_MAPPING,
                f"Mapping {len(intent.filters)} filter value(s)",
                lambda: self._mapper.map_filters(intent.filters, customer_id),
                lambda mapped: {
                    "mapped": sum(1 for f in mapped if f.value is not None),
                    "total": len(mapped),
                },
            )
            intent = replace(intent, filters=filters)

        # ── Stage 3: Semantic search + terminology mapping ─────────────
        user_terms = extract_user_terms(intent)

        async def parallel_bundle() -> tuple[list[SemanticSearchResult], list[TerminologyMapping]]:
            return await self._executor.execute_two(
                ParallelTask("semantic_search", lambda: self._semantic_search(customer_id, intent)),
                ParallelTask("terminology_mapping", lambda: self._terminology_mapping(customer_id, user_terms)),
                timeout_ms=self._parallel_timeout_ms,
                cancel_event=request.cancel_event,
            )

        semantic_results, terminology = await self._run_step(
            trail,
            "parallel_bundle",
            PipelineStage.PARALLEL,
            "Semantic search + terminology mapping",
            parallel_bundle,
            lambda value: {"results": len(value[0]), "mappings": len(value[1])},
        )
        forms = aggregate_forms(semantic_results)

        # ── Stage 4: Join path planning ────────────────────────────────
        required_tables = extract_required_tables(semantic_results, self._default_seed_table)

        async def plan_joins() -> list[JoinPath]:
            if len(required_tables) <= 1:
                logger.debug("Single or no tables, skipping join planning")
                return []
            return await self._planner.plan_join_paths(
                required_tables,
                customer_id,
                prefer_direct_joins=True,
                detect_cycles=True,
            )

        join_paths = await self._run_step(
            trail,
            "join_path_planning",
            PipelineStage.JOIN_PLANNING,
            f"Planning joins for {len(required_tables)} table(s)",
            plan_joins,
            lambda paths: {"paths": len(paths)},
        )

        # ── Stage 5: Context assembly ──────────────────────────────────
        async def assemble() -> ContextBundle:
            return self._assembler.assemble(
                customer_id,
                request.question,
                intent,
                forms=forms,
                terminology=terminology,
                join_paths=join_paths,
                discovery_run_id=run_id,
            )

        bundle = await self._run_step(
            trail,
            "context_assembly",
            PipelineStage.ASSEMBLY,
            "Assembling context bundle",
            assemble,
            lambda b: {"confidence": f"{b.overall_confidence:.2f}"},
        )
        total_ms = _elapsed_ms(started)
        bundle.metadata.duration_ms = total_ms

        plog.step_complete(
            PipelineStage.COMPLETE,
            f"Discovery completed in {total_ms}ms",
            forms=len(forms),
            terminology=len(terminology),
            join_paths=len(join_paths),
            confidence=f"{bundle.overall_confidence:.2f}",
        )
        plog.stats(**{step.step: f"{step.duration_ms}ms" for step in trail})

        # ── Stage 6: Audit ─────────────────────────────────────────────
        await self._persist_audit(run_id, request, bundle, total_ms)
        return bundle

    # ── Stages ───────────────────────────────────────────────────────

    async def _classify(
        self, request: DiscoveryRequest, trail: list[PipelineStepResult]
    ) -> IntentResult:
        with plog.timed_step(PipelineStage.INTENT, "Classifying intent") as timer:
            try:
                intent = await self._classifier.classify(
                    request.question,
                    request.customer_id,
                    model_id=request.model_id,
                    cancel_event=request.cancel_event,
                )
            except Exception as e:
                plog.step_warning(PipelineStage.INTENT, "Classifier raised, using default intent", error=e)
                intent = degraded_intent(str(e))
        trail.append(
            PipelineStepResult(
                step="intent_classification",
                success=True,
                duration_ms=timer.elapsed_ms,
                summary={"type": intent.type.value, "confidence": intent.confidence},
            )
        )
        plog.detail(
            f"Intent: {intent.type.value}",
            scope=intent.scope.value,
            metrics=len(intent.metrics),
            filters=len(intent.filters),
            confidence=f"{intent.confidence:.2f}",
        )
        return intent

    async def _semantic_search(
        self, customer_id: str, intent: IntentResult
    ) -> list[SemanticSearchResult]:
        if not intent.metrics:
            plog.step_warning(PipelineStage.SEMANTIC_SEARCH, "No metrics/concepts found in intent")
            return []
        return await self._searcher.search_fields(
            customer_id,
            intent.metrics,
            min_confidence=self._semantic_min_confidence,
            limit=self._semantic_limit,
            include_non_form=True,
        )

    async def _terminology_mapping(
        self, customer_id: str, user_terms: list[str]
    ) -> list[TerminologyMapping]:
        if not self._enable_term_mapping:
            plog.detail("Skipping user term mapping, filter values are used instead")
            return []
        if not user_terms:
            return []
        return await self._mapper.map_user_terms(
            user_terms,
            customer_id,
            min_confidence=self._terminology_min_confidence,
            support_fuzzy_matching=True,
            handle_abbreviations=True,
        )

    async def _persist_audit(
        self,
        run_id: str,
        request: DiscoveryRequest,
        bundle: ContextBundle,
        duration_ms: int,
    ) -> None:
        if self._audit_repo is None:
            return
        try:
            await self._audit_repo.persist(
                run_id, request.customer_id, request.question, bundle, duration_ms
            )
            plog.detail(f"Audit record persisted: {run_id}")
        except Exception as e:
            plog.step_warning(PipelineStage.AUDIT, "Failed to persist audit record", error=e)

    # ── Step bookkeeping ─────────────────────────────────────────────

    async def _run_step(
        self,
        trail: list[PipelineStepResult],
        step: str,
        stage: tuple[str, str, str],
        message: str,
        fn: Callable[[], Awaitable[T]],
        summarize: Callable[[T], dict[str, Any]],
    ) -> T:
        plog.step_start(stage, message)
        started = time.perf_counter()
        try:
            value = await fn()
        except Exception as e:
            duration = _elapsed_ms(started)
            trail.append(PipelineStepResult(step, False, duration, error=str(e)))
            plog.step_error(stage, f"{message} failed after {duration}ms", error=e)
            _log_trail(trail)
            raise PipelineStepError(step, e, trail) from e

        duration = _elapsed_ms(started)
        summary = summarize(value)
        trail.append(PipelineStepResult(step, True, duration, summary=summary))
        plog.step_complete(stage, f"{message} ({duration}ms)", **summary)
        return value


# ── Pure helpers ─────────────────────────────────────────────────────

def aggregate_forms(results: list[SemanticSearchResult]) -> list[FormInContext]:
    """Group form results by form name; a form's confidence is its best field's."""
    forms: dict[str, FormInContext] = {}
    for result in results:
        if result.source != "form":
            continue
        name = result.form_name or "Unknown"
        form = forms.get(name)
        if form is None:
            form = FormInContext(form_name=name, reason=FORM_REASON, confidence=result.confidence)
            forms[name] = form
        form.fields.append(
            FieldInContext(
                field_name=result.field_name,
                field_id=result.id,
                semantic_concept=result.semantic_concept,
                data_type=result.data_type,
                confidence=result.confidence,
            )
        )
        form.confidence = max(form.confidence, result.confidence)
    return list(forms.values())


def extract_required_tables(
    results: list[SemanticSearchResult], default_seed_table: str = "rpt.Patient"
) -> list[str]:
    """Distinct non-form table names, or the seed table for form-only results."""
    tables: list[str] = []
    for result in results:
        if result.source == "non_form" and result.table_name and result.table_name not in tables:
            tables.append(result.table_name)
    if not tables and any(r.source == "form" for r in results):
        return [default_seed_table]
    return tables


def extract_user_terms(intent: IntentResult) -> list[str]:
    """Filter phrases, filter values and metric names, first occurrence order."""
    terms: list[str] = []
    for intent_filter in intent.filters:
        for term in (intent_filter.user_phrase, intent_filter.value):
            if term and term not in terms:
                terms.append(term)
    for metric in intent.metrics:
        if metric and metric not in terms:
            terms.append(metric)
    return terms


def _log_trail(trail: list[PipelineStepResult]) -> None:
    for step in trail:
        logger.error(
            "  step=%s success=%s duration=%dms error=%s",
            step.step,
            step.success,
            step.duration_ms,
            step.error,
        )


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
