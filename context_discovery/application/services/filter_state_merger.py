"""Filter state merger: reconciles filter signals from parallel pipelines.

Template parameters, semantic mappings, placeholder extraction and residual
extraction can each report the same filter. Sources describing the same
filter are grouped, ranked by confidence and checked for value conflicts
to produce one MergedFilterState per filter.

Sorting uses a full tie-break, so any permutation of the input sources
yields identical merged states.
"""

import json
import logging
import re
from typing import Any

from context_discovery.domain.entities import (
    ConflictResolution,
    FilterStateConflict,
    FilterStateSource,
    FilterStateSourceType,
    MergedFilterState,
    ResidualFilter,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_CONFLICT_THRESHOLD = 0.1
DEFAULT_HIGH_CONFIDENCE_THRESHOLD = 0.85
GAP_PRECISION = 6

_CLARIFICATION = re.compile(r"clarification", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


class FilterStateMerger:
    """Merges FilterStateSource signals into conflict-aware filter states."""

    def __init__(
        self,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        conflict_threshold: float = DEFAULT_CONFLICT_THRESHOLD,
        high_confidence_threshold: float = DEFAULT_HIGH_CONFIDENCE_THRESHOLD,
    ):
        self.confidence_threshold = confidence_threshold
        self.conflict_threshold = conflict_threshold
        self.high_confidence_threshold = high_confidence_threshold

    def merge_filter_states(self, sources: list[FilterStateSource]) -> list[MergedFilterState]:
        """Group ``sources`` by filter and merge each group.

        Groups appear in order of their first source.
        """
        if not sources:
            return []

        groups: dict[str, list[FilterStateSource]] = {}
        for source in sources:
            groups.setdefault(_group_key(source), []).append(source)

        return [self._merge_group(group) for group in groups.values()]

    # ── Group merge ──────────────────────────────────────────────────

    def _merge_group(self, sources: list[FilterStateSource]) -> MergedFilterState:
        ranked = sorted(sources, key=_rank_key)
        top = ranked[0]
        top_confidence = _confidence(top)

        conflicts = self._detect_conflicts(ranked)
        blocking = any(c.resolution is not ConflictResolution.HIGHEST_CONFIDENCE for c in conflicts)
        resolved = top_confidence >= self.confidence_threshold and not blocking

        value = top.value if resolved else None
        resolved_via: list[FilterStateSourceType] = []
        if resolved:
            resolved_via = [
                s.source
                for s in ranked
                if _confidence(s) >= self.confidence_threshold
                and _stringify(s.value) == _stringify(value)
            ]

        original_text = next(
            (s.original_text for s in ranked if s.original_text and s.original_text.strip()),
            "unknown filter",
        )

        logger.debug(
            "Merged %d source(s) for '%s' → resolved=%s confidence=%.2f",
            len(sources),
            original_text,
            resolved,
            top_confidence,
        )

        return MergedFilterState(
            original_text=original_text,
            normalized_text=normalize_filter_text(original_text),
            field=_pick(ranked, top.field if resolved else None, "field"),
            operator=_pick(ranked, top.operator if resolved else None, "operator"),
            value=value,
            resolved=resolved,
            confidence=top_confidence,
            resolved_via=resolved_via,
            all_sources=ranked,
            warnings=_collect_warnings(ranked, resolved),
            conflicts=conflicts,
        )

    def _detect_conflicts(self, ranked: list[FilterStateSource]) -> list[FilterStateConflict]:
        confident = [s for s in ranked if _confidence(s) >= self.confidence_threshold]
        if len(confident) <= 1:
            return []

        by_value: dict[str, list[FilterStateSource]] = {}
        for source in confident:
            by_value.setdefault(_stringify(source.value), []).append(source)
        if len(by_value) <= 1:
            return []

        top, second = confident[0], confident[1]
        conflict_sources = [group[0] for group in by_value.values()]

        if (
            _confidence(top) >= self.high_confidence_threshold
            and _confidence(second) >= self.high_confidence_threshold
        ):
            return [FilterStateConflict(conflict_sources, ConflictResolution.AI_JUDGMENT)]

        # Rounded so 0.8 - 0.7 compares equal to a 0.1 threshold.
        gap = round(_confidence(top) - _confidence(second), GAP_PRECISION)
        if gap <= self.conflict_threshold:
            return [FilterStateConflict(conflict_sources, ConflictResolution.REQUIRES_CLARIFICATION)]

        return [
            FilterStateConflict(
                conflict_sources,
                ConflictResolution.HIGHEST_CONFIDENCE,
                resolved_value=top.value,
            )
        ]


# ── Module-level helpers ─────────────────────────────────────────────

def merge_filter_states(
    sources: list[FilterStateSource], **options: float
) -> list[MergedFilterState]:
    """Merge with a throwaway FilterStateMerger configured by ``options``."""
    return FilterStateMerger(**options).merge_filter_states(sources)


def filter_residuals_against_merged(
    residuals: list[ResidualFilter], merged: list[MergedFilterState]
) -> list[ResidualFilter]:
    """Drop residual filters already satisfied by a resolved merged state.

    A residual is satisfied when its text matches a resolved state's
    normalized text, or its (field, value) matches a resolved state's.
    """
    if not residuals:
        return []
    if not merged:
        return list(residuals)

    resolved_texts = {m.normalized_text for m in merged if m.resolved and m.normalized_text}
    resolved_field_values = {
        _field_value_key(m.field, m.value) for m in merged if m.resolved and m.field
    }

    kept: list[ResidualFilter] = []
    for residual in residuals:
        text_match = bool(residual.original_text) and (
            normalize_filter_text(residual.original_text) in resolved_texts
        )
        key = _field_value_key(residual.field, residual.value)
        field_match = key is not None and key in resolved_field_values
        if not (text_match or field_match):
            kept.append(residual)
    return kept


def normalize_filter_text(text: str | None) -> str:
    return _WHITESPACE.sub(" ", (text or "").strip().lower())


def _group_key(source: FilterStateSource) -> str:
    normalized = normalize_filter_text(source.original_text)
    if normalized:
        return normalized
    return "|".join(
        [
            (source.field or "").lower() or "unknown",
            (source.operator or "").lower() or "any",
            _stringify(source.value),
        ]
    )


def _confidence(source: FilterStateSource) -> float:
    value = source.confidence
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return max(0.0, min(1.0, float(value)))


def _rank_key(source: FilterStateSource) -> tuple:
    return (
        -_confidence(source),
        FilterStateSourceType(source.source).value,
        _stringify(source.value),
        source.original_text or "",
        source.field or "",
        source.operator or "",
    )


def _stringify(value: Any) -> str:
    if value is None:
        return "null"
    try:
        return json.dumps(value, sort_keys=True)
    except (TypeError, ValueError):
        return str(value)


def _pick(ranked: list[FilterStateSource], preferred: str | None, attr: str) -> str | None:
    if preferred:
        return preferred
    return next((getattr(s, attr) for s in ranked if getattr(s, attr) is not None), None)


def _collect_warnings(ranked: list[FilterStateSource], resolved: bool) -> list[str]:
    warnings: list[str] = []
    for source in ranked:
        for warning in [source.error, *source.warnings]:
            if warning and warning not in warnings:
                warnings.append(warning)
    if resolved:
        return [w for w in warnings if not _CLARIFICATION.search(w)]
    return warnings


def _field_value_key(field: str | None, value: Any) -> str | None:
    if not field:
        return None
    return f"{field.lower()}|{_stringify(value)}"
