from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Literal
from datetime import datetime, timezone
from .patient import PatientProfile
from .trial import TrialMatch
from .validation import ValidationResult


class MatchRequest(BaseModel):
    """Request from frontend to match a patient's notes against trials."""
    model_config = ConfigDict(populate_by_name=True)

    patient_text: str = Field("", alias="patientText")
    session_id: Optional[str] = Field(None, alias="sessionId")


class MatchResponse(BaseModel):
    """Full matching outcome: profile, diagnostics and ranked trial matches."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    session_id: str = Field(..., alias="sessionId")
    profile: PatientProfile
    profile_validation: ValidationResult = Field(default_factory=ValidationResult, alias="profileValidation")
    trial_validation: ValidationResult = Field(default_factory=ValidationResult, alias="trialValidation")
    used_fallback_trials: bool = Field(False, alias="usedFallbackTrials")
    matches: List[TrialMatch] = Field(default_factory=list)
    summary: str = ""


class ConsultationRecord(BaseModel):
    """Display summary of one consultation, as kept in the history log."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    diagnosis: str
    match_type: Literal["High", "Med", "None"] = Field(..., alias="matchType")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    patient_summary: str = Field("", alias="patientSummary")
    original_notes: Optional[str] = Field(None, alias="originalNotes")
