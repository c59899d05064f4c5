"""Assessment of one patient against one trial's eligibility criteria."""

import json

from ..schemas.patient import PatientProfile
from ..schemas.trial import TrialRecord

SYSTEM_PROMPT = """You are a clinical trial eligibility screener. Be conservative: patient safety comes before finding a match. Explain your reasoning so a clinician can review it."""

ASSESSMENT_PROMPT = """Assess patient eligibility for the clinical trial below. Return ONLY raw JSON (no markdown, no code blocks, no backticks) with these exact fields:
{
    "matchScore": <number 0-100>,
    "confidenceLevel": <"high", "medium" or "low">,
    "inclusionMatches": [<inclusion criteria the patient meets>],
    "exclusionFlags": [<confirmed exclusions>],
    "uncertainFactors": [<criteria that cannot be judged from the data>],
    "explanation": <string>,
    "questionsToAsk": [<questions that would resolve the uncertain factors>]
}

IMPORTANT scoring rules:
- Use exclusionFlags ONLY for confirmed exclusions explicitly supported by the patient data
- Put anything unknown or uncertain into uncertainFactors and questionsToAsk
- Do NOT cap matchScore for unknowns; cap it at 25 only when there is at least one confirmed exclusion
- Start the response with { and end with }"""


def build_assessment_prompt(profile: PatientProfile, trial: TrialRecord) -> str:
    patient_json = profile.model_dump_json(by_alias=True, indent=2)
    criteria_json = json.dumps(
        {"inclusion": trial.inclusion_criteria, "exclusion": trial.exclusion_criteria},
        indent=2,
    )
    return f"{ASSESSMENT_PROMPT}\n\nPatient:\n{patient_json}\n\nTrial Criteria:\n{criteria_json}"
