from .extract_patient_profile import build_extraction_prompt
from .assess_trial_fit import build_assessment_prompt
from .generate_mock_trials import build_mock_trials_prompt

__all__ = ["build_extraction_prompt", "build_assessment_prompt", "build_mock_trials_prompt"]
