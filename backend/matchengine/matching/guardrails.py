"""
Guardrail Engine

Deterministic safety net applied to every model-produced assessment. Hard
exclusions are re-derived from the profile and the trial criteria with
HardExclusionEvaluator, independently of what the model claimed:

- violations the model missed force an override (score capped, high confidence,
  flags appended, explanation rewritten)
- violations the model already flagged keep the model's narrative
- otherwise the assessment passes through untouched

The engine can only move a result toward exclusion: it never raises a score
and never lowers confidence.
"""

import logging
import re
from typing import List, Optional

from ..schemas.patient import PatientProfile
from ..schemas.trial import ConfidenceLevel, GuardrailDecision, MatchResult, TrialRecord
from .rules import ONCOLOGY_DICTIONARY, EvaluationResult, HardExclusionEvaluator, contains_any

logger = logging.getLogger(__name__)

# A confirmed exclusion never scores above this
EXCLUSION_SCORE_CEILING = 25


class GuardrailEngine:
    """Applies hard clinical rules on top of a model assessment."""

    def __init__(
        self,
        evaluator: Optional[HardExclusionEvaluator] = None,
        score_ceiling: int = EXCLUSION_SCORE_CEILING,
    ):
        self.evaluator = evaluator or HardExclusionEvaluator()
        self.score_ceiling = score_ceiling

    # -------------------------------------------------------------------------
    # FLAG MATCHING
    # -------------------------------------------------------------------------

    @staticmethod
    def is_confirmed_flag(flag: str) -> bool:
        """Model flags hedged with "unknown", "verify", etc. are not confirmed exclusions."""
        text = flag.strip().lower()
        if not text or text in ("none", "n/a", "na"):
            return False
        return not contains_any(text, ONCOLOGY_DICTIONARY.uncertain_flag_terms)

    @staticmethod
    def _captures(flag: str, violation: EvaluationResult) -> bool:
        text = flag.lower()
        if violation.criterion and violation.criterion.lower() in text:
            return True
        return any(
            re.search(rf"(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])", text)
            for keyword in violation.keywords
        )

    def _is_captured(self, violation: EvaluationResult, confirmed_flags: List[str]) -> bool:
        return any(self._captures(flag, violation) for flag in confirmed_flags)

    # -------------------------------------------------------------------------
    # DECISION
    # -------------------------------------------------------------------------

    def _synthesize_explanation(self, new: List[EvaluationResult], result: MatchResult) -> str:
        reasons = "; ".join(v.flag for v in new)
        return (
            f"Excluded by deterministic eligibility check: {reasons}. "
            f"The model estimate ({result.match_score}, {result.confidence_level.value} confidence) "
            f"was overridden."
        )

    def evaluate(self, profile: PatientProfile, trial: TrialRecord, result: MatchResult) -> GuardrailDecision:
        violations = self.evaluator.find_violations(profile, trial)
        confirmed_flags = [f for f in result.exclusion_flags if self.is_confirmed_flag(f)]

        new = [v for v in violations if not self._is_captured(v, confirmed_flags)]
        found = [v.flag for v in violations]

        if new:
            new_flags = [v.flag for v in new]
            overridden = result.model_copy(update={
                "match_score": min(result.match_score, self.score_ceiling),
                "confidence_level": ConfidenceLevel.HIGH,
                "exclusion_flags": [*result.exclusion_flags, *new_flags],
                "explanation": self._synthesize_explanation(new, result),
            })
            logger.info(
                "Guardrail override on %s: score %d -> %d, new flags %s",
                trial.identifier, result.match_score, overridden.match_score, new_flags,
            )
            return GuardrailDecision(result=overridden, overridden=True, flags=found)

        if confirmed_flags and (
            result.match_score > self.score_ceiling or result.confidence_level != ConfidenceLevel.HIGH
        ):
            # Confirmed exclusion already in the flags: keep the narrative, enforce the score invariant
            adjusted = result.model_copy(update={
                "match_score": min(result.match_score, self.score_ceiling),
                "confidence_level": ConfidenceLevel.HIGH,
            })
            logger.info(
                "Guardrail clamped %s to %d for confirmed exclusion flags %s",
                trial.identifier, adjusted.match_score, confirmed_flags,
            )
            return GuardrailDecision(result=adjusted, overridden=False, flags=found)

        return GuardrailDecision(result=result, overridden=False, flags=found)


# Global instance
guardrail_engine = GuardrailEngine()


def apply_guardrails(profile: PatientProfile, trial: TrialRecord, result: MatchResult) -> GuardrailDecision:
    return guardrail_engine.evaluate(profile, trial, result)
