"""
Validation and sanitization of untrusted model output.

Normalizers coerce raw model data into canonical records and never fail;
validators report errors (blocking) and warnings (advisory).
"""

from .profile import normalize_profile, validate_profile
from .trials import normalize_trials, validate_trials
from .assessment import normalize_match_result
from .fallback import (
    FallbackProvider,
    fallback_provider,
    get_fallback_trials,
    get_fallback_profile,
    get_fallback_match_result,
)

__all__ = [
    "normalize_profile",
    "validate_profile",
    "normalize_trials",
    "validate_trials",
    "normalize_match_result",
    "FallbackProvider",
    "fallback_provider",
    "get_fallback_trials",
    "get_fallback_profile",
    "get_fallback_match_result",
]
