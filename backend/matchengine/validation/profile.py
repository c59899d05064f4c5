"""
Patient profile normalization and plausibility validation.

`normalize_profile` turns whatever the extraction model returned into a
well-typed PatientProfile and never fails. `validate_profile` checks the
canonical profile against medical plausibility rules. In the profile path the
validator is advisory: the pipeline logs its findings and carries on, since a
partially extracted profile still carries signal worth matching.
"""

import logging
import math
import re
from typing import Any, Dict, List, Optional

from ..schemas.patient import Gender, PatientProfile
from ..schemas.validation import ValidationResult
from ..matching.rules import (
    ONCOLOGY_DICTIONARY,
    POSITIVE,
    biomarker_status,
    is_cancer_diagnosis,
    is_triple_negative,
    mentions_metastatic,
    normalize_biomarker_key,
    parse_ecog,
)

logger = logging.getLogger(__name__)

AGE_MIN = 0
AGE_MAX = 120
ADULT_AGE_MIN = 18

ECOG_MAX = 5

STAGE_PATTERN = re.compile(r"^Stage (I|II|III|IV)[A-C]?$")

ARABIC_TO_ROMAN = {"1": "I", "2": "II", "3": "III", "4": "IV"}

NULL_WORDS = {"null", "none", "unknown", "n/a", "na", "not mentioned", "not reported", "-"}

GENDER_VALUES = {
    "male": Gender.MALE, "m": Gender.MALE, "man": Gender.MALE,
    "female": Gender.FEMALE, "f": Gender.FEMALE, "woman": Gender.FEMALE,
    "other": Gender.OTHER, "non-binary": Gender.OTHER, "nonbinary": Gender.OTHER, "nb": Gender.OTHER,
}

# Values of colliding biomarker keys are joined with this separator
MERGED_VALUE_SEPARATOR = " / "


# =============================================================================
# NORMALIZATION
# =============================================================================

def _get(raw: Dict[str, Any], *keys: str) -> Any:
    """Return the first present key (camelCase wire name first, then snake_case)."""
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and math.isfinite(value):
        return str(value)
    return ""


def _normalize_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [text for text in (_stringify(item) for item in value) if text]


def _normalize_mapping(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    mapping = {}
    for key, item in value.items():
        name = str(key).strip()
        text = _stringify(item)
        if name and text:
            mapping[name] = text
    return mapping


def parse_age(value: Any) -> Optional[int]:
    """Parse an age without clamping; None when absent or non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = re.search(r"-?\d+(?:\.\d+)?", value)
        if match:
            return int(float(match.group(0)))
    return None


def _normalize_age(value: Any) -> int:
    age = parse_age(value)
    if age is None:
        return 0
    return max(AGE_MIN, min(AGE_MAX, age))


def _normalize_gender(value: Any) -> Gender:
    if isinstance(value, Gender):
        return value
    return GENDER_VALUES.get(_stringify(value).lower(), Gender.UNKNOWN)


def normalize_stage(value: Any) -> Optional[str]:
    """
    "stage iiia" -> "Stage IIIA", "3b" -> "Stage IIIB", "IV" -> "Stage IV".
    Unrecognized stages are kept (with a capitalized "Stage" prefix) for the validator to flag.
    """
    if value is None or isinstance(value, bool):
        return None
    text = re.sub(r"\s+", " ", str(value)).strip()
    if not text or text.lower() in NULL_WORDS:
        return None

    prefixed = re.match(r"^stage\b\s*(.*)$", text, re.IGNORECASE)
    remainder = prefixed.group(1).strip() if prefixed else text

    compact = re.fullmatch(r"(iv|i{1,3}|[0-4])([a-c])?", remainder, re.IGNORECASE)
    if compact:
        numeral = compact.group(1).upper()
        numeral = ARABIC_TO_ROMAN.get(numeral, numeral)
        sub_stage = (compact.group(2) or "").upper()
        return f"Stage {numeral}{sub_stage}"

    if prefixed:
        # Out-of-range roman numerals ("stage v") are uppercased so the validator names them as written
        if re.fullmatch(r"[ivxlc]+[a-c]?", remainder, re.IGNORECASE):
            remainder = remainder.upper()
        return f"Stage {remainder}".strip()
    return text


def normalize_performance_status(value: Any) -> Optional[str]:
    """Accept 1, "1", "ECOG 1", "ecog: 2", "ECOG PS 1"; return "ECOG n" (n is not range-checked here)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value) and float(value).is_integer():
        return f"ECOG {int(value)}"

    text = re.sub(r"\s+", " ", str(value)).strip()
    if not text or text.lower() in NULL_WORDS:
        return None

    match = re.fullmatch(
        r"(?:ecog)?\s*(?:performance status|ps)?\s*(?:score|grade)?\s*[:=]?\s*(\d+)", text, re.IGNORECASE
    )
    if match:
        return f"ECOG {int(match.group(1))}"
    return text


def _biomarker_value(value: Any) -> str:
    if isinstance(value, bool):
        return "positive" if value else "negative"
    return _stringify(value)


def normalize_biomarkers(value: Any) -> Dict[str, str]:
    """
    Normalize keys ("her2-neu", "HER2", "erbb2" -> "HER2").
    Colliding keys are merged rather than overwritten; differing values are kept side by side.
    """
    if not isinstance(value, dict):
        return {}

    merged: Dict[str, List[str]] = {}
    for key, raw_value in value.items():
        marker = normalize_biomarker_key(key)
        text = _biomarker_value(raw_value)
        if not marker or not text:
            continue
        values = merged.setdefault(marker, [])
        for part in text.split(MERGED_VALUE_SEPARATOR):
            part = part.strip()
            if part and part.lower() not in (v.lower() for v in values):
                values.append(part)

    for marker, values in merged.items():
        if len(values) > 1:
            logger.warning("Biomarker key collision on %s: keeping all values %s", marker, values)
    return {marker: MERGED_VALUE_SEPARATOR.join(values) for marker, values in merged.items() if values}


def normalize_profile(raw: Any) -> PatientProfile:
    """
    Coerce an untrusted extraction result into a canonical PatientProfile.
    Never fails: malformed fields degrade to safe defaults.
    """
    if isinstance(raw, PatientProfile):
        raw = raw.model_dump(by_alias=True)
    if not isinstance(raw, dict):
        logger.warning("Patient profile is not an object (%s); using empty profile", type(raw).__name__)
        raw = {}

    raw_age = _get(raw, "age")
    age = _normalize_age(raw_age)
    parsed = parse_age(raw_age)
    if parsed is not None and parsed != age:
        logger.warning("Patient age %s outside %d-%d, clamped to %d", parsed, AGE_MIN, AGE_MAX, age)

    return PatientProfile(
        age=age,
        gender=_normalize_gender(_get(raw, "gender", "sex", "biological_sex")),
        conditions=_normalize_list(_get(raw, "conditions")),
        medications=_normalize_list(_get(raw, "medications", "current_medications")),
        allergies=_normalize_list(_get(raw, "allergies")),
        prior_treatments=_normalize_list(_get(raw, "priorTreatments", "prior_treatments")),
        biomarkers=normalize_biomarkers(_get(raw, "biomarkers")),
        stage=normalize_stage(_get(raw, "stage")),
        performance_status=normalize_performance_status(_get(raw, "performanceStatus", "performance_status")),
        lab_values=_normalize_mapping(_get(raw, "labValues", "lab_values")),
    )


# =============================================================================
# VALIDATION
# =============================================================================

def _check_age(profile: PatientProfile, raw: Any, errors: List[str]) -> None:
    if profile.age == 0:
        errors.append("age: value is 0, patient age could not be extracted")
    elif profile.age < ADULT_AGE_MIN or profile.age > AGE_MAX:
        errors.append(
            f"age: {profile.age} is outside the adult-oncology plausibility range "
            f"({ADULT_AGE_MIN}-{AGE_MAX})"
        )

    if isinstance(raw, dict):
        raw_age = parse_age(raw.get("age"))
        if raw_age is not None and (raw_age < AGE_MIN or raw_age > AGE_MAX):
            errors.append(
                f"age: extracted value {raw_age} is outside {AGE_MIN}-{AGE_MAX} "
                f"and was clamped to {profile.age}"
            )


def _check_stage(profile: PatientProfile, errors: List[str]) -> None:
    if profile.stage is not None and not STAGE_PATTERN.match(profile.stage):
        errors.append(
            f"stage: '{profile.stage}' does not match the expected format 'Stage I-IV' "
            f"with optional sub-stage A-C"
        )


def _check_performance_status(profile: PatientProfile, errors: List[str]) -> None:
    if profile.performance_status is None:
        return
    ecog = parse_ecog(profile.performance_status)
    if ecog is None:
        errors.append(f"performanceStatus: '{profile.performance_status}' is not a recognizable ECOG score")
    elif ecog > ECOG_MAX:
        errors.append(f"performanceStatus: ECOG {ecog} is outside the valid range 0-{ECOG_MAX}")


def _check_triple_negative(profile: PatientProfile, errors: List[str]) -> None:
    if not is_triple_negative(profile.conditions):
        return
    diagnosis = next(
        c for c in profile.conditions if any(t in c.lower() for t in ONCOLOGY_DICTIONARY.triple_negative_terms)
    )
    for marker in (*ONCOLOGY_DICTIONARY.core_breast_markers, "HR"):
        value = profile.biomarkers.get(marker)
        if value is not None and biomarker_status(value) == POSITIVE:
            errors.append(
                f"biomarkers: {marker} recorded as '{value}' contradicts the triple-negative diagnosis "
                f"'{diagnosis}' (triple-negative breast cancer is HER2-, ER- and PR- by definition)"
            )


def _check_in_situ_metastatic(profile: PatientProfile, errors: List[str]) -> None:
    stage = profile.stage or ""
    if not re.match(r"^Stage 0(?![0-9])", stage):
        return
    metastatic_sources = [c for c in profile.conditions if mentions_metastatic(c)]
    if mentions_metastatic(stage):
        metastatic_sources.append(stage)
    if metastatic_sources:
        errors.append(
            f"stage: '{stage}' (in-situ disease) cannot be metastatic, "
            f"but metastatic disease is indicated by {metastatic_sources}"
        )


def _check_completeness(profile: PatientProfile, warnings: List[str]) -> None:
    if not profile.conditions:
        warnings.append("conditions: no diagnoses were extracted")
        return
    core_markers = ONCOLOGY_DICTIONARY.core_breast_markers
    if (
        is_cancer_diagnosis(profile.conditions)
        and profile.stage is None
        and not any(marker in profile.biomarkers for marker in core_markers)
    ):
        warnings.append(
            "stage/biomarkers: cancer diagnosis without stage or HER2/ER/PR status, "
            "matching precision will be reduced"
        )


def _check_biomarker_conflicts(profile: PatientProfile, warnings: List[str]) -> None:
    for marker, value in profile.biomarkers.items():
        if MERGED_VALUE_SEPARATOR in value:
            warnings.append(f"biomarkers: {marker} has conflicting recorded values '{value}'")


def log_validation(label: str, result: ValidationResult) -> None:
    """Report every blocking error and every warning to the diagnostic log."""
    for error in result.errors:
        logger.error("%s validation error: %s", label, error)
    for warning in result.warnings:
        logger.warning("%s validation warning: %s", label, warning)


def validate_profile(profile: PatientProfile, raw: Any = None) -> ValidationResult:
    """
    Check a canonical profile against plausibility rules. All rules run; none short-circuit.

    Pass the pre-normalization extraction as `raw` to also report values the
    normalizer had to clamp (e.g. an extracted age of 150).
    """
    if not isinstance(profile, PatientProfile):
        profile = normalize_profile(profile)

    errors: List[str] = []
    warnings: List[str] = []

    _check_age(profile, raw, errors)
    _check_stage(profile, errors)
    _check_performance_status(profile, errors)
    _check_triple_negative(profile, errors)
    _check_in_situ_metastatic(profile, errors)
    _check_completeness(profile, warnings)
    _check_biomarker_conflicts(profile, warnings)

    result = ValidationResult(errors=errors, warnings=warnings)
    log_validation("Patient profile", result)
    return result
