"""
Trial batch normalization and structural validation.

Trial records come from a generative model or an external source and are
treated as untrusted. The normalizer repairs what can be repaired safely
(identifiers, phase spelling, scores) and never invents clinical text. The
validator's errors are blocking: the caller substitutes the fallback batch.
"""

import logging
import math
import random
import re
from typing import Any, Dict, List, Optional

from ..schemas.trial import MatchType, TrialPhase, TrialRecord
from ..schemas.validation import ValidationResult
from .fallback import FallbackProvider, fallback_provider
from .profile import log_validation

logger = logging.getLogger(__name__)

TRIAL_BATCH_SIZE = 3
MIN_INCLUSION_CRITERIA = 3
MIN_EXCLUSION_CRITERIA = 2

PERFECT_MIN_SCORE = 85
EXCLUDED_MAX_SCORE = 25

NCT_PATTERN = re.compile(r"^NCT\d{8}$")

PHASE_NUMERALS = {
    "1": TrialPhase.PHASE_1, "i": TrialPhase.PHASE_1,
    "2": TrialPhase.PHASE_2, "ii": TrialPhase.PHASE_2,
    "3": TrialPhase.PHASE_3, "iii": TrialPhase.PHASE_3,
}


def generate_nct_id(rng: Optional[random.Random] = None) -> str:
    """Random identifier of the form NCT + 8 digits."""
    rng = rng or random
    return f"NCT{rng.randrange(10 ** 8):08d}"


# =============================================================================
# FIELD NORMALIZERS
# =============================================================================

def _text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _get(raw: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def normalize_phase(value: Any) -> TrialPhase:
    """
    "Phase I", "phase ii", "3", "Phase 1/2" -> canonical phase.
    The first numeral wins for combined phases; unrecognized values map to Phase 2.
    """
    if isinstance(value, TrialPhase):
        return value
    text = _text(value).lower()
    match = re.search(r"\b(?:phase\s*)?(iii|ii|i|[123])\b", text)
    if not match:
        if text:
            logger.warning("Unrecognized trial phase %r, defaulting to %s", value, TrialPhase.PHASE_2.value)
        return TrialPhase.PHASE_2
    return PHASE_NUMERALS[match.group(1)]


def normalize_score(value: Any) -> int:
    """Parse a 0-100 score; non-numeric input is 0."""
    score = 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        score = float(value) if math.isfinite(value) else 0.0
    elif isinstance(value, str):
        match = re.search(r"-?\d+(?:\.\d+)?", value)
        if match:
            score = float(match.group(0))
    return int(max(0, min(100, round(score))))


def _normalize_match_type(value: Any) -> MatchType:
    if isinstance(value, MatchType):
        return value
    try:
        return MatchType(_text(value).lower())
    except ValueError:
        return MatchType.UNCERTAIN


def _normalize_criteria(value: Any) -> List[str]:
    """Drop blank entries. Short lists are left short for the validator."""
    if not isinstance(value, (list, tuple)):
        return []
    return [text for text in (_text(item) for item in value) if text]


def _normalize_identifier(value: Any, rng: Optional[random.Random]) -> str:
    identifier = _text(value).upper()
    if NCT_PATTERN.match(identifier):
        return identifier
    replacement = generate_nct_id(rng)
    logger.warning("Trial identifier %r is not a valid NCT number, replaced with %s", value, replacement)
    return replacement


def normalize_trial(raw: Dict[str, Any], rng: Optional[random.Random] = None) -> TrialRecord:
    return TrialRecord(
        identifier=_normalize_identifier(_get(raw, "nctId", "nct_id", "identifier", "id"), rng),
        title=_text(_get(raw, "title", "brief_title")),
        phase=normalize_phase(_get(raw, "phase")),
        summary=_text(_get(raw, "briefSummary", "brief_summary", "summary")),
        inclusion_criteria=_normalize_criteria(_get(raw, "inclusionCriteria", "inclusion_criteria")),
        exclusion_criteria=_normalize_criteria(_get(raw, "exclusionCriteria", "exclusion_criteria")),
        match_type=_normalize_match_type(_get(raw, "matchType", "match_type")),
        match_score=normalize_score(_get(raw, "matchScore", "match_score")),
        cancer_type=_text(_get(raw, "cancerType", "cancer_type")) or None,
        placeholder=raw.get("placeholder") is True,
    )


# =============================================================================
# BATCH NORMALIZER
# =============================================================================

def normalize_trials(
    raw: Any,
    fallback: Optional[FallbackProvider] = None,
    rng: Optional[random.Random] = None,
) -> List[TrialRecord]:
    """
    Normalize an untrusted trial batch to exactly three records.

    Extra records are dropped. Missing slots are filled with copies of the
    fallback trials marked `placeholder`, which `validate_trials` always
    rejects, so a short batch ends up replaced by the fallback set.
    """
    if not isinstance(raw, (list, tuple)):
        logger.warning("Trial batch is not a list (%s); treating as empty", type(raw).__name__)
        raw = []

    items = []
    for item in raw:
        if isinstance(item, TrialRecord):
            items.append(item.model_dump(by_alias=True))
        elif isinstance(item, dict):
            items.append(item)
        else:
            logger.warning("Skipping trial entry of type %s", type(item).__name__)

    if len(items) > TRIAL_BATCH_SIZE:
        logger.warning("Trial batch has %d records, keeping the first %d", len(items), TRIAL_BATCH_SIZE)

    trials = [normalize_trial(item, rng) for item in items[:TRIAL_BATCH_SIZE]]

    if len(trials) < TRIAL_BATCH_SIZE:
        logger.warning(
            "Trial batch has %d of %d records, filling with placeholder records",
            len(trials), TRIAL_BATCH_SIZE,
        )
        used = {trial.identifier for trial in trials}
        for record in (fallback or fallback_provider).get_fallback_trials():
            if len(trials) == TRIAL_BATCH_SIZE:
                break
            if record.identifier in used:
                continue
            trials.append(record.model_copy(update={"placeholder": True}))

    return trials


# =============================================================================
# BATCH VALIDATOR
# =============================================================================

def _trial_view(item: Any) -> Dict[str, Any]:
    if isinstance(item, TrialRecord):
        return item.model_dump(by_alias=True, mode="json")
    if isinstance(item, dict):
        return item
    return {}


def _criteria_count(value: Any) -> int:
    if not isinstance(value, (list, tuple)):
        return 0
    return sum(1 for item in value if _text(item))


def _validate_trial(index: int, view: Dict[str, Any], errors: List[str], warnings: List[str]) -> Optional[str]:
    identifier = view.get("nctId")
    label = f"trial[{index}] {identifier}"

    if not isinstance(identifier, str) or not NCT_PATTERN.match(identifier):
        errors.append(f"trial[{index}]: identifier {identifier!r} does not match NCT + 8 digits")

    for name in ("title", "phase", "briefSummary"):
        if not _text(view.get(name)):
            errors.append(f"{label}: required field '{name}' is empty")

    inclusion = _criteria_count(view.get("inclusionCriteria"))
    if inclusion < MIN_INCLUSION_CRITERIA:
        errors.append(f"{label}: {inclusion} inclusion criteria, at least {MIN_INCLUSION_CRITERIA} required")
    exclusion = _criteria_count(view.get("exclusionCriteria"))
    if exclusion < MIN_EXCLUSION_CRITERIA:
        errors.append(f"{label}: {exclusion} exclusion criteria, at least {MIN_EXCLUSION_CRITERIA} required")

    if view.get("placeholder") is True:
        errors.append(f"{label}: placeholder record filling a short batch")

    match_type = _text(view.get("matchType")).lower()
    score = view.get("matchScore")
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        if match_type == MatchType.PERFECT.value and score < PERFECT_MIN_SCORE:
            warnings.append(f"{label}: matchType 'perfect' with score {score} below {PERFECT_MIN_SCORE}")
        if match_type == MatchType.EXCLUDED.value and score > EXCLUDED_MAX_SCORE:
            warnings.append(f"{label}: matchType 'excluded' with score {score} above {EXCLUDED_MAX_SCORE}")
    return match_type


def validate_trials(trials: Any) -> ValidationResult:
    """
    Structural checks on a trial batch. Accepts canonical records or raw
    dicts and never raises; any error means the batch must not be displayed.
    """
    items = list(trials) if isinstance(trials, (list, tuple)) else []
    errors: List[str] = []
    warnings: List[str] = []

    if len(items) != TRIAL_BATCH_SIZE:
        errors.append(f"batch: expected exactly {TRIAL_BATCH_SIZE} trials, got {len(items)}")

    seen_types = set()
    for index, item in enumerate(items):
        seen_types.add(_validate_trial(index, _trial_view(item), errors, warnings))

    missing = [t.value for t in MatchType if t.value not in seen_types]
    if missing:
        warnings.append(f"batch: no trial with matchType {', '.join(missing)}")

    result = ValidationResult(errors=errors, warnings=warnings)
    log_validation("Trial batch", result)
    return result
