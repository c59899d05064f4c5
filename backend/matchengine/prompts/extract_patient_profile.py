"""Extraction of a structured patient profile from free-text clinical notes."""

SYSTEM_PROMPT = """You are a medical information extraction specialist. Your job is to turn a clinician's free-text notes into structured patient data for clinical trial matching.

Extract ONLY information that is explicitly stated. Do not infer or assume."""

EXTRACTION_PROMPT = """Extract patient data as raw JSON (no markdown, no code blocks, no backticks) with these exact fields:
{
    "age": <number or null>,
    "gender": <"male", "female", "other" or "unknown">,
    "conditions": [<diagnoses as strings>],
    "medications": [<current medications>],
    "allergies": [<allergies>],
    "biomarkers": {<marker name>: <status string>, e.g. "HER2": "positive"},
    "stage": <string like "Stage IIIA" or null>,
    "priorTreatments": [<prior therapies, surgeries, radiation>],
    "performanceStatus": <string like "ECOG 1" or null>,
    "labValues": {<lab name>: <value string>}
}

Use null or an empty array for missing data. Use double quotes for all keys and string values. No trailing commas. Start the response with { and end with }."""


def build_extraction_prompt(free_text: str) -> str:
    return f"{EXTRACTION_PROMPT}\n\nInput:\n\"{free_text}\""
