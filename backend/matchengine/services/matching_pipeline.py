"""
Matching Pipeline

Orchestrates one consultation request:

    free text -> model extraction -> normalize/validate profile (advisory)
              -> trial source -> normalize/validate trials (blocking, fallback on error)
              -> per trial: model assessment -> guardrail (concurrently)
              -> sort by score, rank, record history

Bad model output never escapes as an exception: every model-facing stage
degrades to its fallback. Only cancellation propagates, and nothing is
recorded for a cancelled request.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, List, Optional, Tuple

from ..schemas.match import MatchResponse
from ..schemas.patient import PatientProfile
from ..schemas.trial import TrialMatch, TrialRecord
from ..schemas.validation import ValidationResult
from ..matching.guardrails import GuardrailEngine, guardrail_engine
from ..prompts import extract_patient_profile, assess_trial_fit
from ..validation import (
    FallbackProvider,
    fallback_provider,
    normalize_match_result,
    normalize_profile,
    normalize_trials,
    validate_profile,
    validate_trials,
)
from .consultation_history import ConsultationHistory, summarize_profile
from .llm_service import LLMResponseError, request_json
from .trial_repository import TrialRepository

logger = logging.getLogger(__name__)

# Failures of a single model call: no provider answered, it took too long, or it replied with non-JSON
MODEL_ERRORS = (asyncio.TimeoutError, RuntimeError, LLMResponseError)


class MatchingPipeline:
    def __init__(
        self,
        llm: Any,
        trial_repository: TrialRepository,
        guardrails: Optional[GuardrailEngine] = None,
        fallback: Optional[FallbackProvider] = None,
        history: Optional[ConsultationHistory] = None,
        timeout: Optional[float] = None,
    ):
        self.llm = llm
        self.trial_repository = trial_repository
        self.guardrails = guardrails or guardrail_engine
        self.fallback = fallback or fallback_provider
        self.history = history if history is not None else ConsultationHistory()
        self.timeout = timeout

    # =========================================================================
    # STEP 1: PATIENT PROFILE
    # =========================================================================

    async def extract_profile(self, patient_text: str) -> Tuple[PatientProfile, ValidationResult]:
        try:
            raw = await request_json(
                self.llm,
                extract_patient_profile.build_extraction_prompt(patient_text),
                extract_patient_profile.SYSTEM_PROMPT,
                timeout=self.timeout,
            )
        except MODEL_ERRORS as e:
            logger.error("Profile extraction failed, using fallback profile: %s", e)
            profile = self.fallback.get_fallback_profile()
            return profile, validate_profile(profile)

        profile = normalize_profile(raw)
        return profile, validate_profile(profile, raw=raw)

    # =========================================================================
    # STEP 2: TRIAL BATCH
    # =========================================================================

    async def load_trials(self, profile: PatientProfile) -> Tuple[List[TrialRecord], ValidationResult, bool]:
        """Returns (trials, validation of the candidate batch, whether fallback trials were substituted)."""
        try:
            raw = await self.trial_repository.query(profile)
        except (*MODEL_ERRORS, OSError, ValueError) as e:
            logger.error("Trial source failed: %s", e)
            raw = []

        trials = normalize_trials(raw, fallback=self.fallback)
        validation = validate_trials(trials)
        if not validation.is_valid:
            logger.error("Trial batch rejected (%d errors), substituting fallback trials", len(validation.errors))
            return self.fallback.get_fallback_trials(), validation, True
        return trials, validation, False

    # =========================================================================
    # STEP 3: ASSESSMENT + GUARDRAIL
    # =========================================================================

    async def assess_trial(self, profile: PatientProfile, trial: TrialRecord) -> TrialMatch:
        try:
            raw = await request_json(
                self.llm,
                assess_trial_fit.build_assessment_prompt(profile, trial),
                assess_trial_fit.SYSTEM_PROMPT,
                timeout=self.timeout,
            )
            result = normalize_match_result(raw)
        except MODEL_ERRORS as e:
            logger.error("Assessment of %s failed, using fallback result: %s", trial.identifier, e)
            result = self.fallback.get_fallback_match_result()

        decision = self.guardrails.evaluate(profile, trial, result)
        return TrialMatch(
            trial=trial,
            result=decision.result,
            guardrail_overridden=decision.overridden,
            guardrail_flags=decision.flags,
        )

    # =========================================================================
    # FULL REQUEST
    # =========================================================================

    async def run(self, patient_text: str, session_id: Optional[str] = None) -> MatchResponse:
        session_id = session_id or str(uuid.uuid4())
        start = time.perf_counter()

        profile, profile_validation = await self.extract_profile(patient_text)
        trials, trial_validation, used_fallback = await self.load_trials(profile)

        # Independent per-trial assessments; cancelling the request cancels all of them
        matches = list(await asyncio.gather(*(self.assess_trial(profile, trial) for trial in trials)))

        matches.sort(key=lambda m: m.result.match_score, reverse=True)
        for rank, match in enumerate(matches, start=1):
            match.rank = rank

        self.history.add(session_id, profile, matches, original_notes=patient_text)
        logger.info(
            "Matched %d trials for session %s in %.0f ms (fallback trials: %s)",
            len(matches), session_id, (time.perf_counter() - start) * 1000, used_fallback,
        )

        return MatchResponse(
            session_id=session_id,
            profile=profile,
            profile_validation=profile_validation,
            trial_validation=trial_validation,
            used_fallback_trials=used_fallback,
            matches=matches,
            summary=summarize_profile(profile),
        )
