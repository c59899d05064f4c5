from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from enum import Enum


class TrialPhase(str, Enum):
    PHASE_1 = "Phase 1"
    PHASE_2 = "Phase 2"
    PHASE_3 = "Phase 3"


class MatchType(str, Enum):
    PERFECT = "perfect"
    EXCLUDED = "excluded"
    UNCERTAIN = "uncertain"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TrialRecord(BaseModel):
    """Canonical clinical trial record (generated, fetched or fallback)."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    identifier: str = Field(..., alias="nctId", description="ClinicalTrials.gov identifier (NCT + 8 digits)")
    title: str
    phase: TrialPhase = Field(TrialPhase.PHASE_2)
    summary: str = Field("", alias="briefSummary")

    # Eligibility
    inclusion_criteria: List[str] = Field(default_factory=list, alias="inclusionCriteria")
    exclusion_criteria: List[str] = Field(default_factory=list, alias="exclusionCriteria")

    # Coarse bucket and fine-grained estimate from the trial source
    match_type: MatchType = Field(MatchType.UNCERTAIN, alias="matchType")
    match_score: int = Field(0, ge=0, le=100, alias="matchScore")

    cancer_type: Optional[str] = Field(None, alias="cancerType")

    # Set only on records used to fill a short batch; never valid for display
    placeholder: bool = False


class MatchResult(BaseModel):
    """Assessment of one patient against one trial."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    match_score: int = Field(0, ge=0, le=100, alias="matchScore")
    confidence_level: ConfidenceLevel = Field(ConfidenceLevel.LOW, alias="confidenceLevel")
    inclusion_matches: List[str] = Field(default_factory=list, alias="inclusionMatches")
    exclusion_flags: List[str] = Field(default_factory=list, alias="exclusionFlags")
    uncertain_factors: List[str] = Field(default_factory=list, alias="uncertainFactors")
    explanation: str = ""
    questions_to_ask: List[str] = Field(default_factory=list, alias="questionsToAsk")


class GuardrailDecision(BaseModel):
    """What the guardrail engine did with a model-produced MatchResult."""
    result: MatchResult
    overridden: bool = False
    flags: List[str] = Field(default_factory=list, description="Hard violations found by the guardrail")


class TrialMatch(BaseModel):
    """A trial together with its final (guardrailed) assessment."""
    model_config = ConfigDict(populate_by_name=True)

    trial: TrialRecord
    result: MatchResult
    rank: int = 0
    guardrail_overridden: bool = Field(False, alias="guardrailOverridden")
    guardrail_flags: List[str] = Field(default_factory=list, alias="guardrailFlags")
