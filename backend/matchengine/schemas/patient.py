from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict
from enum import Enum


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


class PatientProfile(BaseModel):
    """
    Canonical patient profile extracted from free-text clinical notes.
    Built once per request by the profile normalizer and never mutated after.
    Wire names are camelCase to match the frontend contract.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    # Demographics
    age: int = Field(0, ge=0, le=120, description="Patient age in years (0 = not extracted)")
    gender: Gender = Field(Gender.UNKNOWN, description="Gender")

    # Diagnoses and history
    conditions: List[str] = Field(default_factory=list, description="Diagnoses, in order of mention")
    medications: List[str] = Field(default_factory=list, description="Current medications")
    allergies: List[str] = Field(default_factory=list, description="Known allergies")
    prior_treatments: List[str] = Field(
        default_factory=list, alias="priorTreatments", description="Previous treatments received"
    )

    # Oncology specifics
    biomarkers: Dict[str, str] = Field(
        default_factory=dict, description="Biomarker name (normalized key) -> status"
    )
    stage: Optional[str] = Field(None, description="Cancer stage, e.g. 'Stage IIIA'")
    performance_status: Optional[str] = Field(
        None, alias="performanceStatus", description="ECOG performance status, e.g. 'ECOG 1'"
    )

    # Lab values
    lab_values: Dict[str, str] = Field(default_factory=dict, alias="labValues", description="Lab name -> value")
