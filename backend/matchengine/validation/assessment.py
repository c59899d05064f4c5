"""Coercion of a model-produced trial assessment into a MatchResult."""

import logging
from typing import Any, List

from ..schemas.trial import ConfidenceLevel, MatchResult
from .trials import normalize_score

logger = logging.getLogger(__name__)


def _strings(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def normalize_match_result(raw: Any) -> MatchResult:
    """Never fails: unknown confidence is "low", scores are clamped, non-string list items dropped."""
    if isinstance(raw, MatchResult):
        return raw
    if not isinstance(raw, dict):
        logger.warning("Assessment is not an object (%s); using empty result", type(raw).__name__)
        raw = {}

    def pick(camel: str, snake: str) -> Any:
        return raw.get(camel) if raw.get(camel) is not None else raw.get(snake)

    confidence = str(pick("confidenceLevel", "confidence_level") or "").strip().lower()
    try:
        confidence_level = ConfidenceLevel(confidence)
    except ValueError:
        confidence_level = ConfidenceLevel.LOW

    explanation = pick("explanation", "explanation")

    return MatchResult(
        match_score=normalize_score(pick("matchScore", "match_score")),
        confidence_level=confidence_level,
        inclusion_matches=_strings(pick("inclusionMatches", "inclusion_matches")),
        exclusion_flags=_strings(pick("exclusionFlags", "exclusion_flags")),
        uncertain_factors=_strings(pick("uncertainFactors", "uncertain_factors")),
        explanation=explanation.strip() if isinstance(explanation, str) else "",
        questions_to_ask=_strings(pick("questionsToAsk", "questions_to_ask")),
    )
