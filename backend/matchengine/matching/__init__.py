"""
Clinical Trial Matching Module

Deterministic hard-exclusion rules and the guardrail engine that applies
them on top of model-produced trial assessments.
"""

from .rules import (
    # Main classes
    HardExclusionEvaluator,

    # Data classes
    EvaluationResult,
    ViolationKind,
    OncologyDictionary,
    CriterionPatterns,

    # Convenience functions
    create_evaluator,

    # Global instances
    ONCOLOGY_DICTIONARY,
    CRITERION_PATTERNS,
)
from .guardrails import GuardrailEngine, apply_guardrails, guardrail_engine, EXCLUSION_SCORE_CEILING

__all__ = [
    "HardExclusionEvaluator",
    "EvaluationResult",
    "ViolationKind",
    "OncologyDictionary",
    "CriterionPatterns",
    "create_evaluator",
    "ONCOLOGY_DICTIONARY",
    "CRITERION_PATTERNS",
    "GuardrailEngine",
    "apply_guardrails",
    "guardrail_engine",
    "EXCLUSION_SCORE_CEILING",
]
