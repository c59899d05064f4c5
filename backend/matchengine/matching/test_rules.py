"""
Test file for the deterministic hard-exclusion rules

Run with: python -m pytest backend/matchengine/matching/test_rules.py -v
"""

from matchengine.matching.rules import (
    NEGATIVE,
    POSITIVE,
    UNKNOWN,
    ViolationKind,
    biomarker_status,
    create_evaluator,
    normalize_biomarker_key,
)
from matchengine.validation import get_fallback_trials, normalize_profile


evaluator = create_evaluator()


def _patient(**fields):
    base = {"age": 52, "gender": "female", "conditions": ["breast cancer"]}
    base.update(fields)
    return normalize_profile(base)


def test_biomarker_helpers():
    assert normalize_biomarker_key("her2/neu") == "HER2"
    assert normalize_biomarker_key("ERBB2") == "HER2"
    assert normalize_biomarker_key("Estrogen Receptor") == "ER"
    assert normalize_biomarker_key("PD-L1") == "PDL1"

    assert biomarker_status("positive") == POSITIVE
    assert biomarker_status("3+") == POSITIVE
    assert biomarker_status("ER+") == POSITIVE
    assert biomarker_status("amplified") == POSITIVE
    assert biomarker_status("Negative") == NEGATIVE
    assert biomarker_status("IHC 1+") == NEGATIVE
    assert biomarker_status("not amplified") == NEGATIVE
    assert biomarker_status("equivocal (IHC 2+)") == UNKNOWN
    assert biomarker_status("positive / negative") == UNKNOWN
    assert biomarker_status(None) == UNKNOWN


def test_biomarker_requirement_in_exclusion_criterion():
    print("\n" + "=" * 60)
    print("TEST: Biomarker Requirement")
    print("=" * 60)

    patient = _patient(stage="Stage IV", biomarkers={"HER2": "positive"})
    violations = evaluator.evaluate("HER2-negative", "exclusion", patient)
    for v in violations:
        print(f"Violation: {v.flag}")

    assert len(violations) == 1
    assert violations[0].kind == ViolationKind.BIOMARKER
    assert "HER2" in violations[0].explanation

    patient = _patient(biomarkers={"HER2": "negative"})
    assert evaluator.evaluate("HER2-negative", "exclusion", patient) == []


def test_biomarker_excluded_trait():
    positive = _patient(biomarkers={"HER2": "3+"})
    negative = _patient(biomarkers={"HER2": "0"})

    violations = evaluator.evaluate("Known HER2-positive disease", "exclusion", positive)
    assert [v.kind for v in violations] == [ViolationKind.BIOMARKER]
    assert evaluator.evaluate("Known HER2-positive disease", "exclusion", negative) == []


def test_triple_negative_requirement():
    patient = _patient(biomarkers={"ER": "positive"})
    violations = evaluator.evaluate(
        "Triple negative breast cancer (HER2-negative, ER-negative, PR-negative)", "inclusion", patient
    )
    assert len(violations) == 1
    assert violations[0].explanation.startswith("ER:")


def test_hormone_receptor_status_from_er_and_pr():
    patient = _patient(biomarkers={"ER": "negative", "PR": "negative", "HER2": "negative"})
    violations = evaluator.evaluate("HR-positive, HER2-negative breast cancer", "inclusion", patient)
    assert len(violations) == 1
    assert violations[0].explanation.startswith("HR:")


def test_unknown_biomarker_never_violates():
    patient = _patient()
    assert evaluator.evaluate("HER2-negative", "exclusion", patient) == []
    assert evaluator.evaluate("HER2-positive breast cancer", "inclusion", patient) == []


def test_ecog_ceiling_and_floor():
    print("\n" + "=" * 60)
    print("TEST: ECOG Performance Status")
    print("=" * 60)

    ecog_2 = _patient(performanceStatus="ECOG 2")
    ecog_1 = _patient(performanceStatus="ECOG 1")
    ecog_3 = _patient(performanceStatus="ECOG 3")

    violations = evaluator.evaluate("ECOG performance status 0-1", "inclusion", ecog_2)
    print(f"ECOG 2 vs 0-1: {[v.explanation for v in violations]}")
    assert [v.kind for v in violations] == [ViolationKind.PERFORMANCE_STATUS]
    assert evaluator.evaluate("ECOG performance status 0-1", "inclusion", ecog_1) == []

    assert len(evaluator.evaluate("ECOG performance status ≥ 3", "exclusion", ecog_3)) == 1
    assert evaluator.evaluate("ECOG performance status ≥ 3", "exclusion", ecog_2) == []
    assert len(evaluator.evaluate("ECOG 2 or higher", "exclusion", ecog_2)) == 1

    assert len(evaluator.evaluate("ECOG performance status 0 (fully active)", "inclusion", ecog_1)) == 1

    # Missing ECOG is unknown, never a violation
    assert evaluator.evaluate("ECOG performance status 0-1", "inclusion", _patient()) == []


def test_age_range():
    older = _patient(age=80)
    violations = evaluator.evaluate("Age 18-75 years", "inclusion", older)
    assert len(violations) == 1
    assert "75" in violations[0].explanation

    assert evaluator.evaluate("Age 18 years or older", "inclusion", _patient()) == []
    assert evaluator.evaluate("Age 18-75 years", "inclusion", _patient(age=None)) == []


def test_prior_therapy():
    patient = _patient(priorTreatments=["Trastuzumab + pertuzumab (2022)"])
    violations = evaluator.evaluate("Prior anti-HER2 therapy (trastuzumab, pertuzumab, etc.)", "exclusion", patient)
    assert [v.kind for v in violations] == [ViolationKind.PRIOR_THERAPY]

    # Timing qualifiers cannot be confirmed from the profile
    patient = _patient(priorTreatments=["chemotherapy"])
    assert evaluator.evaluate("Prior chemotherapy within 4 weeks", "exclusion", patient) == []

    # Nothing recorded means unknown
    assert evaluator.evaluate("Prior chemotherapy for breast cancer", "exclusion", _patient()) == []


def test_metastatic_exclusion():
    metastatic = _patient(stage="Stage IV")
    assert [v.kind for v in evaluator.evaluate("Metastatic disease", "exclusion", metastatic)] == [
        ViolationKind.METASTATIC
    ]
    assert evaluator.evaluate("Metastatic disease", "exclusion", _patient(stage="Stage II")) == []
    # Site-specific metastasis criteria need more than the stage
    assert evaluator.evaluate("Active brain metastases requiring immediate treatment", "exclusion", metastatic) == []


def test_full_trial_violations():
    print("\n" + "=" * 60)
    print("TEST: Full Trial")
    print("=" * 60)

    trial = next(t for t in get_fallback_trials() if t.identifier == "NCT05234567")
    patient = _patient(
        biomarkers={"HER2": "positive"},
        priorTreatments=["trastuzumab"],
        performanceStatus="ECOG 2",
    )

    violations = evaluator.find_violations(patient, trial)
    for v in violations:
        print(f"  - {v.flag}")

    assert {v.kind for v in violations} == {ViolationKind.PERFORMANCE_STATUS, ViolationKind.PRIOR_THERAPY}
    assert all(v.flag.endswith('")') for v in violations)


def test_age_limits_stay_within_age_clause():
    patient = _patient(age=52, performanceStatus="ECOG 1")
    assert evaluator.evaluate("Age ≥ 18 years and ECOG ≤ 1", "inclusion", patient) == []

    older = _patient(age=80, performanceStatus="ECOG 1")
    violations = evaluator.evaluate("Age 18 to 75 years, ECOG ≤ 1", "inclusion", older)
    assert [v.kind for v in violations] == [ViolationKind.AGE]
    assert "75" in violations[0].explanation

    # Comparators attached to "or older" / "and 75 years" are not clause breaks
    assert evaluator.evaluate("18 years of age or older", "inclusion", patient) == []
    assert len(evaluator.evaluate("Between 18 and 50 years of age", "inclusion", patient)) == 1


def test_ecog_limits_stay_within_ecog_clause():
    criterion = "ECOG ≥ 2 or life expectancy < 3 months"
    assert evaluator.evaluate(criterion, "exclusion", _patient(performanceStatus="ECOG 1")) == []

    violations = evaluator.evaluate(criterion, "exclusion", _patient(performanceStatus="ECOG 2"))
    assert [v.kind for v in violations] == [ViolationKind.PERFORMANCE_STATUS]
    assert "2 or higher" in violations[0].explanation


def test_receptor_disjunction_reads_as_hormone_receptor():
    print("\n" + "=" * 60)
    print("TEST: ER/PR Disjunction")
    print("=" * 60)

    er_only = _patient(biomarkers={"ER": "positive", "PR": "negative"})
    for criterion in ("ER-positive and/or PR-positive breast cancer", "ER+ or PR+", "ER or PR positive disease"):
        violations = evaluator.evaluate(criterion, "inclusion", er_only)
        print(f"{criterion}: {[v.explanation for v in violations]}")
        assert violations == []

    receptor_negative = _patient(biomarkers={"ER": "negative", "PR": "negative"})
    violations = evaluator.evaluate("ER-positive and/or PR-positive breast cancer", "inclusion", receptor_negative)
    assert len(violations) == 1
    assert violations[0].explanation.startswith("HR:")

    # A conjunction still needs both receptors
    assert len(evaluator.evaluate("ER-positive and PR-positive", "inclusion", er_only)) == 1
