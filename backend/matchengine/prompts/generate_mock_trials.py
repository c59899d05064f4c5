"""Generation of a demo trial batch tailored to the patient."""

SYSTEM_PROMPT = """You generate realistic but fictional oncology clinical trial listings for a matching demo. Criteria must read like real ClinicalTrials.gov eligibility text."""

MOCK_TRIALS_PROMPT = """Based on the patient below, generate exactly 3 clinical trials as a raw JSON array (no markdown, no code blocks, no backticks):
- one the patient clearly matches (matchType "perfect", matchScore 85-100)
- one the patient is excluded from by a specific criterion (matchType "excluded", matchScore 0-25)
- one where eligibility depends on missing information (matchType "uncertain", matchScore 40-75)

Each trial is an object with these exact fields:
{
    "nctId": <"NCT" followed by 8 digits>,
    "title": <string>,
    "phase": <"Phase 1", "Phase 2" or "Phase 3">,
    "briefSummary": <one or two sentences>,
    "inclusionCriteria": [<at least 3 strings>],
    "exclusionCriteria": [<at least 2 strings>],
    "matchType": <"perfect", "excluded" or "uncertain">,
    "matchScore": <number 0-100>
}

Start the response with [ and end with ]."""


def build_mock_trials_prompt(patient_context: str) -> str:
    return f"{MOCK_TRIALS_PROMPT}\n\nPatient:\n{patient_context}"
