"""
Static fallback data.

Used when trial generation fails, when a generated batch does not pass
validation, when profile extraction fails, and when a single trial
assessment cannot be obtained. Every call returns fresh objects built from
the same constants, so callers can never mutate the shared reference data.
"""

from typing import Any, Dict, List

from ..schemas.patient import PatientProfile
from ..schemas.trial import ConfidenceLevel, MatchResult, TrialRecord


# Pre-validated batch: exactly one perfect, one excluded and one uncertain trial
FALLBACK_TRIALS: List[Dict[str, Any]] = [
    {
        "nctId": "NCT05123456",
        "title": "Study of Trastuzumab Deruxtecan in HER2+ Breast Cancer After Prior Therapy",
        "phase": "Phase 3",
        "briefSummary": (
            "Evaluates trastuzumab deruxtecan in patients with HER2-positive breast cancer "
            "whose disease progressed after earlier anti-HER2 treatment."
        ),
        "inclusionCriteria": [
            "Age 18 years or older",
            "HER2-positive breast cancer (IHC 3+ or FISH+)",
            "Stage III or IV disease",
            "Prior trastuzumab allowed and progression documented",
            "ECOG performance status 0-2",
        ],
        "exclusionCriteria": [
            "Active brain metastases requiring immediate treatment",
            "LVEF <50%",
            "Uncontrolled intercurrent illness",
        ],
        "matchType": "perfect",
        "matchScore": 92,
        "cancerType": "breast",
    },
    {
        "nctId": "NCT05234567",
        "title": "First-Line Tucatinib Plus Trastuzumab in Treatment-Naive HER2+ Breast Cancer",
        "phase": "Phase 2",
        "briefSummary": (
            "Tests tucatinib combined with trastuzumab as first treatment for HER2-positive "
            "breast cancer in patients who have not yet received systemic therapy."
        ),
        "inclusionCriteria": [
            "Age 18-75 years",
            "HER2-positive breast cancer",
            "Stage II-IV disease",
            "No prior systemic therapy for breast cancer",
            "ECOG performance status 0-1",
        ],
        "exclusionCriteria": [
            "Prior anti-HER2 therapy (trastuzumab, pertuzumab, etc.)",
            "Prior chemotherapy for breast cancer",
            "Cardiac dysfunction",
        ],
        "matchType": "excluded",
        "matchScore": 20,
        "cancerType": "breast",
    },
    {
        "nctId": "NCT05345678",
        "title": "Neratinib Maintenance Therapy in High-Risk HER2+ Breast Cancer",
        "phase": "Phase 3",
        "briefSummary": (
            "Studies extended neratinib therapy after completion of trastuzumab-based treatment "
            "in patients with high-risk, non-metastatic HER2-positive breast cancer."
        ),
        "inclusionCriteria": [
            "Age 18-70 years",
            "HER2-positive breast cancer",
            "Stage III disease",
            "Completed prior trastuzumab-based therapy",
            "ECOG performance status 0 (fully active)",
        ],
        "exclusionCriteria": [
            "Metastatic disease",
            "Severe diarrhea or GI disorders",
            "Inadequate organ function",
        ],
        "matchType": "uncertain",
        "matchScore": 62,
        "cancerType": "breast",
    },
]

FALLBACK_MATCH_RESULT: Dict[str, Any] = {
    "matchScore": 0,
    "confidenceLevel": ConfidenceLevel.LOW.value,
    "inclusionMatches": [],
    "exclusionFlags": ["Unable to assess criteria due to processing error"],
    "uncertainFactors": ["All criteria require manual review"],
    "explanation": "Assessment failed. Please review trial criteria manually.",
    "questionsToAsk": ["Verify all eligibility criteria with trial coordinator"],
}


class FallbackProvider:
    """Deterministic, pre-validated substitutes for failed model calls."""

    def get_fallback_trials(self) -> List[TrialRecord]:
        return [TrialRecord.model_validate(trial) for trial in FALLBACK_TRIALS]

    def get_fallback_profile(self) -> PatientProfile:
        """Empty but well-typed profile (age 0 marks "not extracted")."""
        return PatientProfile()

    def get_fallback_match_result(self) -> MatchResult:
        return MatchResult.model_validate(FALLBACK_MATCH_RESULT)


# Global instance
fallback_provider = FallbackProvider()


def get_fallback_trials() -> List[TrialRecord]:
    return fallback_provider.get_fallback_trials()


def get_fallback_profile() -> PatientProfile:
    return fallback_provider.get_fallback_profile()


def get_fallback_match_result() -> MatchResult:
    return fallback_provider.get_fallback_match_result()
