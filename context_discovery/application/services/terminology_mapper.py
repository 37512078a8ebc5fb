"""Terminology mapper: resolves user phrases to canonical form option values.

Applies abbreviation expansion, normalization (accent folding, naive
singularization) and Levenshtein-based fuzzy scoring so that typos and
phrasing drift ("diabtic DFU cases") still land on the stored option
("Diabetic Foot Ulcer").

Only form option definitions are consulted, never patient data values.
"""

import logging
import re
import unicodedata
from dataclasses import replace

from context_discovery.application.interfaces import FormOptionRepository
from context_discovery.domain.entities import (
    FormOptionCandidate,
    IntentFilter,
    TerminologyMapping,
)
from context_discovery.domain.entities.terminology import OPTION_LIMIT
from context_discovery.domain.exceptions import DiscoveryValidationError
from context_discovery.infrastructure.cache.ttl_cache import MISSING, TTLCache

logger = logging.getLogger(__name__)

DEFAULT_MIN_CONFIDENCE = 0.7
DEFAULT_CACHE_TTL_SECONDS = 600

ABBREVIATIONS: dict[str, str] = {
    "dfu": "diabetic foot ulcer",
    "vlu": "venous leg ulcer",
    "pi": "pressure injury",
    "npwt": "negative pressure wound therapy",
    "hba1c": "hemoglobin a1c",
}

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9\s]")
_NON_ALNUM_LOWER = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")

_TOKEN_MATCH_RATIO = 0.75


# ── Text helpers ─────────────────────────────────────────────────────

def normalize_term(text: str | None) -> str:
    """Fold accents, drop punctuation, lowercase and singularize each token.

    Idempotent: ``normalize_term(normalize_term(x)) == normalize_term(x)``.
    """
    if not text:
        return ""
    folded = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    folded = _NON_ALNUM.sub(" ", folded).lower()
    return " ".join(_singularize(token) for token in folded.split())


def _singularize(token: str) -> str:
    if token.endswith("ies") and len(token) > 3:
        return f"{token[:-3]}y"
    if token.endswith("s") and not token.endswith("ss") and len(token) > 3:
        return token[:-1]
    return token


def expand_abbreviations(text: str) -> str:
    """Replace known clinical abbreviations token by token."""
    tokens = _WHITESPACE.sub(" ", text).strip().split(" ")
    expanded = []
    for token in tokens:
        key = token.lower()
        expanded.append(
            ABBREVIATIONS.get(key)
            or ABBREVIATIONS.get(_NON_ALNUM_LOWER.sub("", key))
            or token
        )
    return " ".join(expanded)


def build_search_patterns(expanded: str, normalized: str) -> list[str]:
    """Build the case-insensitive LIKE patterns for a repository lookup."""
    patterns: list[str] = []

    def add(pattern: str) -> None:
        if pattern not in patterns:
            patterns.append(pattern)

    cleaned = expanded.strip().lower()
    tokens = [t for t in normalized.split(" ") if t]
    if cleaned:
        add(f"%{cleaned}%")
    if normalized:
        add(f"%{normalized}%")
        add(f"%{'%'.join(tokens)}%")
    for token in tokens:
        add(f"%{token}%")
    return patterns


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit cost for insert, delete and substitute."""
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def lexical_similarity(a: str, b: str) -> float:
    """``1 - distance / max_len`` clamped to [0, 1]; 0 when either side is empty."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    similarity = 1 - levenshtein(a, b) / max(len(a), len(b))
    return max(0.0, min(1.0, similarity))


def token_overlap(term: str, candidate: str, semantic_concept: str) -> float:
    """Share of term tokens approximately found in the candidate.

    A token matching a candidate token counts fully; one matching only a
    semantic-concept token counts half.
    """
    term_tokens = [t for t in term.split(" ") if t]
    if not term_tokens:
        return 0.0
    candidate_tokens = [t for t in candidate.split(" ") if t]
    concept_tokens = normalize_term(semantic_concept).split(" ")

    matches = 0.0
    for token in term_tokens:
        if _contains_approximate_match(token, candidate_tokens):
            matches += 1
        elif _contains_approximate_match(token, concept_tokens):
            matches += 0.5
    return max(0.0, min(1.0, matches / len(term_tokens)))


def _contains_approximate_match(token: str, candidates: list[str]) -> bool:
    for item in candidates:
        max_len = max(len(token), len(item))
        if max_len == 0:
            continue
        if 1 - levenshtein(token, item) / max_len >= _TOKEN_MATCH_RATIO:
            return True
    return False


def score_candidate(
    normalized_term: str,
    candidate: FormOptionCandidate,
    *,
    support_fuzzy_matching: bool = True,
) -> float:
    """Blend stored confidence with lexical evidence; never below the stored confidence."""
    normalized_candidate = normalize_term(candidate.option_value)
    if support_fuzzy_matching:
        lexical = lexical_similarity(normalized_term, normalized_candidate)
        overlap = token_overlap(normalized_term, normalized_candidate, candidate.semantic_concept)
    else:
        lexical = overlap = 1.0 if normalized_term == normalized_candidate else 0.0

    score = candidate.confidence * 0.55 + lexical * 0.3 + overlap * 0.1
    if normalized_term in candidate.semantic_concept:
        score += 0.05
    return min(1.0, max(score, candidate.confidence))


def pick_best_candidate(
    normalized_term: str,
    candidates: list[FormOptionCandidate],
    *,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    support_fuzzy_matching: bool = True,
) -> tuple[FormOptionCandidate, float] | None:
    """Return the highest scoring candidate and its rounded score, or None.

    Ties on score go to the candidate with the higher stored confidence,
    then to the earlier candidate.
    """
    best: tuple[float, float, FormOptionCandidate] | None = None
    for candidate in candidates:
        if not candidate.option_value:
            continue
        score = score_candidate(
            normalized_term, candidate, support_fuzzy_matching=support_fuzzy_matching
        )
        if score < min_confidence:
            continue
        if best is None or (score, candidate.confidence) > (best[0], best[1]):
            best = (score, candidate.confidence, candidate)
    if best is None:
        return None
    return best[2], round(best[0], 4)


# ── Service ──────────────────────────────────────────────────────────

class TerminologyMapper:
    """Maps user terms and intent filters onto stored form option values."""

    def __init__(
        self,
        form_option_repo: FormOptionRepository,
        *,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        cache: TTLCache[TerminologyMapping | None] | None = None,
    ):
        self._repo = form_option_repo
        self._min_confidence = min_confidence
        self.cache: TTLCache[TerminologyMapping | None] = (
            cache if cache is not None else TTLCache(DEFAULT_CACHE_TTL_SECONDS, name="terminology")
        )

    async def map_user_terms(
        self,
        terms: list[str],
        customer_id: str,
        *,
        min_confidence: float | None = None,
        support_fuzzy_matching: bool = True,
        handle_abbreviations: bool = True,
    ) -> list[TerminologyMapping]:
        """Map each term to its best form option; terms without a match are skipped.

        Both hits and misses are cached per (customer, normalized term).

        Raises:
            DiscoveryValidationError: If ``customer_id`` is blank.
        """
        _require_customer(customer_id)
        threshold = self._min_confidence if min_confidence is None else min_confidence
        mappings: list[TerminologyMapping] = []

        for original in (t.strip() for t in terms if isinstance(t, str)):
            if not original:
                continue
            expanded = expand_abbreviations(original) if handle_abbreviations else original
            normalized = normalize_term(expanded)
            if not normalized:
                continue

            key = (customer_id, normalized)
            cached = self.cache.get(key)
            if cached is not MISSING:
                if cached is not None:
                    mappings.append(replace(cached, user_term=original))
                continue

            candidates = await self._repo.load_form_options(
                customer_id,
                build_search_patterns(expanded, normalized),
                option_code=normalized.replace(" ", "_"),
                limit=OPTION_LIMIT,
            )
            best = pick_best_candidate(
                normalized,
                candidates,
                min_confidence=threshold,
                support_fuzzy_matching=support_fuzzy_matching,
            )
            if best is None:
                logger.debug("No terminology match for '%s' (customer=%s)", original, customer_id)
                self.cache.set(key, None)
                continue

            candidate, score = best
            mapping = TerminologyMapping(
                user_term=original,
                field_name=candidate.field_name,
                form_name=candidate.form_name,
                field_value=candidate.option_value,
                semantic_concept=candidate.semantic_concept,
                source=candidate.source,
                confidence=score,
            )
            self.cache.set(key, mapping)
            mappings.append(mapping)

        return mappings

    async def map_filters(
        self, filters: list[IntentFilter], customer_id: str
    ) -> list[IntentFilter]:
        """Resolve each filter's user phrase to an exact stored option value.

        Returns new filters in input order with ``value``,
        ``mapping_confidence``, ``overridden`` and ``mapping_error`` set.

        Raises:
            DiscoveryValidationError: If ``customer_id`` is blank.
        """
        _require_customer(customer_id)
        mapped: list[IntentFilter] = []
        for intent_filter in filters:
            mapped.append(await self._map_filter(intent_filter, customer_id))
        return mapped

    async def _map_filter(self, intent_filter: IntentFilter, customer_id: str) -> IntentFilter:
        phrase = (intent_filter.user_phrase or "").strip()
        expanded = expand_abbreviations(phrase) if phrase else ""
        normalized = normalize_term(expanded)
        if not normalized:
            return replace(
                intent_filter,
                mapping_confidence=0.0,
                mapping_error="Filter has no user phrase to map",
            )

        candidates = await self._repo.load_form_options(
            customer_id,
            build_search_patterns(expanded, normalized),
            option_code=normalized.replace(" ", "_"),
            field_name=intent_filter.field,
            limit=OPTION_LIMIT,
        )

        value: str | None = None
        confidence = 0.0
        for candidate in candidates:
            if candidate.option_value and normalize_term(candidate.option_value) == normalized:
                value, confidence = candidate.option_value, 1.0
                break
        else:
            best = pick_best_candidate(normalized, candidates, min_confidence=self._min_confidence)
            if best is not None:
                value, confidence = best[0].option_value, best[1]

        if value is None:
            logger.warning(
                "No option value found for filter '%s' (field=%s, customer=%s)",
                phrase,
                intent_filter.field,
                customer_id,
            )
            return replace(
                intent_filter,
                value=None,
                mapping_confidence=0.0,
                overridden=False,
                mapping_error=f"No matching value found for '{phrase}'",
            )

        overridden = intent_filter.value is not None and intent_filter.value != value
        if overridden:
            logger.info(
                "Filter value overridden: '%s' -> '%s' (field=%s)",
                intent_filter.value,
                value,
                intent_filter.field,
            )
        return replace(
            intent_filter,
            value=value,
            mapping_confidence=confidence,
            overridden=overridden,
            mapping_error=None,
        )


def _require_customer(customer_id: str) -> None:
    if not customer_id or not customer_id.strip():
        raise DiscoveryValidationError("customer_id", "customer_id is required to map terminology")
