from matchengine.schemas.patient import Gender
from matchengine.schemas.trial import ConfidenceLevel, MatchType
from matchengine.validation import (
    get_fallback_match_result,
    get_fallback_profile,
    get_fallback_trials,
    validate_trials,
)


def test_fallback_trials_are_deterministic():
    first = get_fallback_trials()
    second = get_fallback_trials()

    assert [t.identifier for t in first] == ["NCT05123456", "NCT05234567", "NCT05345678"]
    assert first == second
    assert [t.match_type for t in first] == [MatchType.PERFECT, MatchType.EXCLUDED, MatchType.UNCERTAIN]


def test_fallback_trials_pass_validation():
    result = validate_trials(get_fallback_trials())
    assert result.is_valid, result.errors
    assert result.warnings == []


def test_fallback_trials_are_fresh_copies():
    first = get_fallback_trials()
    first[0].inclusion_criteria.append("Mutated by caller")

    second = get_fallback_trials()
    assert first[0] is not second[0]
    assert "Mutated by caller" not in second[0].inclusion_criteria


def test_fallback_profile_is_empty_but_typed():
    profile = get_fallback_profile()
    assert profile.age == 0
    assert profile.gender == Gender.UNKNOWN
    assert profile.conditions == []
    assert profile.biomarkers == {}
    assert profile.stage is None


def test_fallback_match_result_asks_for_manual_review():
    result = get_fallback_match_result()
    assert result.match_score == 0
    assert result.confidence_level == ConfidenceLevel.LOW
    assert result.questions_to_ask
    assert "manually" in result.explanation
