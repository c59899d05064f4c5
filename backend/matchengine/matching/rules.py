"""
Deterministic Hard-Exclusion Rules

Keyword/field matching of a patient profile against a trial's eligibility
criteria. Unlike the model assessment, these rules only ever report a
violation when the patient data *confirms* it; missing or ambiguous data
always evaluates to "unknown".

Rule families:
- Biomarker status (HER2, ER, PR, hormone receptor, triple-negative, driver mutations)
- ECOG performance status ceilings and exclusion floors
- Age ranges stated in inclusion criteria
- Named prior therapies in exclusion criteria
- General "metastatic disease" exclusions
"""

import logging
import re
from typing import Dict, List, Optional, Tuple
from enum import Enum
from dataclasses import dataclass, field

from ..schemas.patient import PatientProfile
from ..schemas.trial import TrialRecord

logger = logging.getLogger(__name__)


# =============================================================================
# STEP 1: RULE CATEGORIES AND TERM DICTIONARIES
# =============================================================================

class ViolationKind(str, Enum):
    """Families of hard eligibility violations."""
    BIOMARKER = "biomarker"
    PERFORMANCE_STATUS = "performance_status"
    AGE = "age"
    PRIOR_THERAPY = "prior_therapy"
    METASTATIC = "metastatic"


POSITIVE = "positive"
NEGATIVE = "negative"
UNKNOWN = "unknown"


@dataclass
class OncologyDictionary:
    """
    Term dictionaries for oncology eligibility matching.
    Keys of `biomarker_aliases` are already reduced to uppercase alphanumerics.
    """

    # Normalized biomarker key -> canonical key
    biomarker_aliases: Dict[str, str] = field(default_factory=lambda: {
        "HER2NEU": "HER2",
        "HER2": "HER2",
        "ERBB2": "HER2",
        "ER": "ER",
        "ESTROGENRECEPTOR": "ER",
        "OESTROGENRECEPTOR": "ER",
        "PR": "PR",
        "PGR": "PR",
        "PROGESTERONERECEPTOR": "PR",
        "HR": "HR",
        "HORMONERECEPTOR": "HR",
        "PDL1": "PDL1",
    })

    # Canonical marker -> regex alternatives as written in criteria text
    # (order matters: combined receptor phrases are matched before single receptors)
    biomarker_mentions: Dict[str, str] = field(default_factory=lambda: {
        "HR": r"hormone[\s-]receptors?|\bhr\b|\ber\s*/\s*pr\b|\ber\s+(?:and(?:/or)?|or)\s+pr\b",
        "HER2": r"\bher[\s-]?2(?:\s*/\s*neu)?\b|\berbb2\b",
        "ER": r"\ber\b|\bo?estrogen[\s-]receptor\b",
        "PR": r"\bpr\b|\bpgr\b|\bprogesterone[\s-]receptor\b",
        "EGFR": r"\begfr\b",
        "ALK": r"\balk\b",
        "ROS1": r"\bros1\b",
        "KRAS": r"\bkras\b",
        "BRAF": r"\bbraf\b",
        "BRCA1": r"\bbrca1\b",
        "BRCA2": r"\bbrca2\b",
        "PDL1": r"\bpd-?l1\b",
    })

    # Triple-negative implies HER2-, ER-, PR-
    triple_negative_terms: List[str] = field(default_factory=lambda: [
        "triple negative", "triple-negative", "triplenegative", "tnbc"
    ])
    core_breast_markers: Tuple[str, ...] = ("HER2", "ER", "PR")

    cancer_terms: List[str] = field(default_factory=lambda: [
        "cancer", "carcinoma", "malignancy", "malignant", "tumor", "tumour", "neoplasm",
        "lymphoma", "leukemia", "leukaemia", "sarcoma", "melanoma", "myeloma",
        "nsclc", "sclc", "tnbc", "adenocarcinoma", "glioblastoma", "oncolog",
    ])

    metastatic_terms: List[str] = field(default_factory=lambda: [
        "metastatic", "metastasis", "metastases", "metastasized", "metastasised", "stage iv",
    ])
    non_metastatic_terms: List[str] = field(default_factory=lambda: [
        "non-metastatic", "nonmetastatic", "non metastatic", "no metastas", "without metastas",
    ])
    # Site-qualified metastasis criteria cannot be decided from stage alone
    metastasis_site_terms: List[str] = field(default_factory=lambda: [
        "brain", "cns", "central nervous", "leptomeningeal", "spinal", "bone", "liver",
        "hepatic", "lung", "pulmonary", "untreated", "active", "symptomatic",
    ])

    therapy_keywords: List[str] = field(default_factory=lambda: [
        "chemotherapy", "radiotherapy", "radiation", "immunotherapy", "endocrine therapy",
        "hormone therapy", "hormonal therapy", "targeted therapy", "stem cell transplant",
        "cdk4/6 inhibitor", "parp inhibitor", "checkpoint inhibitor",
    ])

    # Treatment-history qualifiers the profile does not record
    therapy_qualifier_terms: List[str] = field(default_factory=lambda: [
        "within", "weeks", "months", "days", "lines of", "line of", "more than", "allowed",
        "permitted", "for metastatic", "in the metastatic", "adjuvant", "neoadjuvant",
        "hypersensitivity", "allerg", "intoleran", "contraindicat",
    ])

    # Criterion phrasing that states the biomarker status is a requirement
    requirement_terms: List[str] = field(default_factory=lambda: [
        "require", "requires", "required", "requiring", "must", "only", "eligible",
        "confirmed", "documented",
    ])
    # Criterion phrasing that states the biomarker status is the excluded trait
    excluded_trait_terms: List[str] = field(default_factory=lambda: [
        "patients with", "patient with", "known", "history of", "presence of",
        "diagnosed with", "tumors that are", "tumours that are",
    ])

    # Model flags containing these are not confirmed exclusions
    uncertain_flag_terms: List[str] = field(default_factory=lambda: [
        "unknown", "unclear", "not reported", "not provided", "not documented", "not specified",
        "unable to", "may ", "might", "possibly", "potential", "verify", "to confirm", "confirmation",
        "missing",
        "no exclusion", "no violation", "not violated", "none identified", "none found",
    ])


# =============================================================================
# STEP 2: REGEX PATTERNS FOR STATUS AND NUMERIC CONSTRAINTS
# =============================================================================

@dataclass
class CriterionPatterns:
    """Regex patterns used to pull statuses and thresholds out of criteria text."""

    # Biomarker status token following a marker mention: "HER2-negative", "ER+", "EGFR mutation-positive"
    status_suffix: str = (
        r"(?:\s+(?:status|expression|mutation|mutations|gene|receptor|receptors))?"
        r"\s*(?:[:=]\s*|-\s*|\s+(?:is\s+)?)?"
        r"(?P<status>positive|negative|pos|neg|non-?amplified|not\s+amplified|amplified|"
        r"mutant|mutated|wild[\s-]?type|rearranged|3\+|[01]\+|\+|-)"
        r"(?![a-z0-9+])"
    )

    # "ER-positive and/or PR-positive", "ER+ or PR+": either receptor, i.e. a hormone receptor statement
    receptor_disjunction: str = (
        r"\b(?:er|o?estrogen[\s-]receptors?)\s*-?\s*(?P<first>positive|negative|pos|neg|\+|-)"
        r"\s+(?:and/or|or)\s+"
        r"(?:pr|pgr|progesterone[\s-]receptors?)\s*-?\s*(?P<second>positive|negative|pos|neg|\+|-)"
        r"(?![a-z0-9+])"
    )

    # Clause boundaries inside one criterion; "2 or less", "18 and 75 years" stay together
    clause_separator: str = (
        r"[,;]|\s+(?:and/or|and|or)\s+"
        r"(?!older|younger|higher|greater|more|worse|above|over|less|lower|better|below|under|\d)"
    )

    ecog_context: str = r"\becog\b|performance status|\bps\b|\bzubrod\b"
    ecog_range: str = r"([0-5])\s*(?:-|–|to)\s*([0-5])"
    ecog_at_least: List[str] = field(default_factory=lambda: [
        r"(?:≥|>=)\s*([0-5])",
        r"([0-5])\s*or\s*(?:higher|greater|more|worse|above)",
        r"(?:at least|of at least)\s*([0-5])",
    ])
    ecog_greater_than: str = r"(?<![<≥>])>\s*([0-5])"
    ecog_at_most: List[str] = field(default_factory=lambda: [
        r"(?:≤|<=)\s*([0-5])",
        r"([0-5])\s*or\s*(?:less|lower|better|below)",
    ])
    ecog_less_than: str = r"(?<![≤<>])<\s*([0-5])"
    ecog_single: str = r"(?:\becog\b|performance status|\bps\b)[^0-9]{0,25}([0-5])\b"

    age_context: str = r"\bage[sd]?\b|years?\s+(?:old|of age)|years?\s+or\s+(?:older|younger)"
    age_range: str = r"(\d{1,3})\s*(?:-|–|to|and)\s*(\d{1,3})\s*(?:years?|yrs?)"
    age_minimum: List[str] = field(default_factory=lambda: [
        r"(?:≥|>=)\s*(\d{1,3})",
        r"(\d{1,3})\s*(?:years?|yrs?)\s*(?:of age\s*)?(?:or|and)\s*(?:older|above|over)",
        r"(?:at least|minimum(?: age)?(?: of)?)\s*(\d{1,3})",
    ])
    age_maximum: List[str] = field(default_factory=lambda: [
        r"(?:≤|<=)\s*(\d{1,3})",
        r"(\d{1,3})\s*(?:years?|yrs?)\s*(?:of age\s*)?(?:or|and)\s*(?:younger|below|under)",
        r"(?:no more than|maximum(?: age)?(?: of)?)\s*(\d{1,3})",
    ])

    prior_context: str = r"\b(?:prior|previous|previously|history of|received|pretreated)\b"
    drug_name: str = (
        r"\b[a-z]{3,}(?:mab|nib|lib|ciclib|parib|platin|taxel|rubicin|mustine|tecan|"
        r"trozole|strozole|fen|tansine|deruxtecan)\b"
    )
    parenthetical: str = r"\(([^)]*)\)"


# Global instances
ONCOLOGY_DICTIONARY = OncologyDictionary()
CRITERION_PATTERNS = CriterionPatterns()


# =============================================================================
# STEP 3: PATIENT-SIDE HELPERS (shared with the profile normalizer/validator)
# =============================================================================

def normalize_biomarker_key(key: object) -> str:
    """Reduce a biomarker name to uppercase alphanumerics and resolve aliases."""
    compact = re.sub(r"[^A-Za-z0-9]", "", str(key)).upper()
    return ONCOLOGY_DICTIONARY.biomarker_aliases.get(compact, compact)


def biomarker_status(value: Optional[str]) -> str:
    """
    Classify a recorded biomarker value as positive / negative / unknown.
    Values carrying both signals (e.g. merged "positive / negative") are unknown.
    """
    text = str(value or "").strip().lower()
    if not text:
        return UNKNOWN

    negative = bool(
        re.search(r"\bneg(?:ative)?\b|\bnot\s+(?:amplified|detected|expressed)\b|\bnon-?amplified\b"
                  r"|\bwild[\s-]?type\b", text)
        or re.fullmatch(r"(?:ihc\s*)?(?:0|1\+|0\s*/\s*1\+)|-", text)
        or re.search(r"[a-z0-9]-(?![a-z0-9])", text)
    )
    positive = bool(
        re.search(r"\bpos(?:itive)?\b|(?<!not )(?<!non-)\bamplified\b|\boverexpress"
                  r"|\bmutant\b|\bmutated\b|\brearranged\b|\b3\+", text)
        or re.search(r"(?<![0-9])\+", text)
    )

    if positive and negative:
        return UNKNOWN
    if positive:
        return POSITIVE
    if negative:
        return NEGATIVE
    return UNKNOWN


def contains_any(text: str, terms: List[str]) -> bool:
    text_lower = text.lower()
    return any(term in text_lower for term in terms)


def is_triple_negative(conditions: List[str]) -> bool:
    return any(contains_any(c, ONCOLOGY_DICTIONARY.triple_negative_terms) for c in conditions)


def is_cancer_diagnosis(conditions: List[str]) -> bool:
    return any(contains_any(c, ONCOLOGY_DICTIONARY.cancer_terms) for c in conditions)


def mentions_metastatic(text: str) -> bool:
    """True when text indicates metastatic disease and is not explicitly non-metastatic."""
    if contains_any(text, ONCOLOGY_DICTIONARY.non_metastatic_terms):
        return False
    return contains_any(text, ONCOLOGY_DICTIONARY.metastatic_terms)


def parse_ecog(performance_status: Optional[str]) -> Optional[int]:
    """Return the ECOG grade from a canonical "ECOG n" string, or None."""
    if not performance_status:
        return None
    match = re.fullmatch(r"ECOG (\d+)", performance_status.strip())
    if not match:
        return None
    return int(match.group(1))


# =============================================================================
# STEP 4: RULE-BASED EVALUATOR
# =============================================================================

@dataclass
class EvaluationResult:
    """Result of evaluating a single criterion against the patient."""
    status: str  # "violated", "satisfied", "unknown"
    criterion: str = ""
    criterion_type: str = "exclusion"  # "inclusion" or "exclusion"
    kind: Optional[ViolationKind] = None
    patient_value: Optional[str] = None
    explanation: str = ""
    # Terms that identify this finding inside free-text model flags
    keywords: List[str] = field(default_factory=list)

    @property
    def flag(self) -> str:
        label = "Exclusion" if self.criterion_type == "exclusion" else "Inclusion"
        return f"{self.explanation} ({label} criterion: \"{self.criterion}\")"


class HardExclusionEvaluator:
    """
    Re-derives hard exclusions for a patient/trial pair.

    Each criterion is checked by every applicable rule family; only
    "violated" results are returned by `find_violations`.
    """

    def __init__(self):
        self.dictionary = ONCOLOGY_DICTIONARY
        self.patterns = CRITERION_PATTERNS

    # -------------------------------------------------------------------------
    # MAIN EVALUATION ENTRY POINTS
    # -------------------------------------------------------------------------

    def find_violations(self, profile: PatientProfile, trial: TrialRecord) -> List[EvaluationResult]:
        violations: List[EvaluationResult] = []
        for criterion in trial.inclusion_criteria:
            violations.extend(self.evaluate(criterion, "inclusion", profile))
        for criterion in trial.exclusion_criteria:
            violations.extend(self.evaluate(criterion, "exclusion", profile))

        if violations:
            logger.debug(
                "Hard violations for %s: %s", trial.identifier, [v.explanation for v in violations]
            )
        return violations

    def evaluate(self, criterion_text: str, criterion_type: str, profile: PatientProfile) -> List[EvaluationResult]:
        """Evaluate one criterion with every rule family; returns violated results only."""
        results = [
            *self._evaluate_biomarkers(criterion_text, criterion_type, profile),
            self._evaluate_performance_status(criterion_text, criterion_type, profile),
            self._evaluate_age(criterion_text, criterion_type, profile),
            self._evaluate_prior_therapy(criterion_text, criterion_type, profile),
            self._evaluate_metastatic(criterion_text, criterion_type, profile),
        ]
        return [r for r in results if r.status == "violated"]

    def _clauses_about(self, text: str, context: str) -> str:
        """Only the clauses of a criterion that mention `context`, so "Age ≥ 18 and ECOG ≤ 1" keeps its numbers apart."""
        clauses = re.split(self.patterns.clause_separator, text)
        return "; ".join(c.strip() for c in clauses if re.search(context, c))

    # -------------------------------------------------------------------------
    # BIOMARKER EVALUATOR
    # -------------------------------------------------------------------------

    def _patient_marker_status(self, marker: str, profile: PatientProfile) -> str:
        biomarkers = profile.biomarkers
        if marker == "HR":
            if "HR" in biomarkers:
                return biomarker_status(biomarkers["HR"])
            er = biomarker_status(biomarkers.get("ER"))
            pr = biomarker_status(biomarkers.get("PR"))
            if POSITIVE in (er, pr):
                return POSITIVE
            if er == NEGATIVE and pr == NEGATIVE:
                return NEGATIVE
            return UNKNOWN
        return biomarker_status(biomarkers.get(marker))

    def _stated_statuses(self, criterion_text: str) -> List[Tuple[str, str, str]]:
        """Find (marker, status, matched_text) triples stated in a criterion."""
        text = criterion_text.lower()
        stated: List[Tuple[str, str, str]] = []

        if contains_any(text, self.dictionary.triple_negative_terms):
            for marker in self.dictionary.core_breast_markers:
                stated.append((marker, NEGATIVE, "triple-negative"))
            return stated

        disjunction = self.patterns.receptor_disjunction
        for match in re.finditer(disjunction, text):
            first = biomarker_status(match.group("first"))
            second = biomarker_status(match.group("second"))
            # "ER- or PR-negative" does not pin down either receptor
            if first == POSITIVE and second == POSITIVE:
                stated.append(("HR", POSITIVE, criterion_text[match.start():match.end()]))
        masked = re.sub(disjunction, lambda m: " " * len(m.group(0)), text)

        for marker, mention in self.dictionary.biomarker_mentions.items():
            pattern = rf"(?:{mention}){self.patterns.status_suffix}"
            for match in re.finditer(pattern, masked):
                status = biomarker_status(match.group("status"))
                if status == UNKNOWN:
                    continue
                stated.append((marker, status, criterion_text[match.start():match.end()]))
            # Prevent "ER/PR-positive" from also being read as a bare "PR-positive"
            masked = re.sub(pattern, lambda m: " " * len(m.group(0)), masked)
        return stated

    def _status_is_required(self, criterion_text: str, criterion_type: str) -> bool:
        """Whether the stated biomarker status is a requirement (vs. the excluded trait)."""
        if criterion_type == "inclusion":
            return True
        text = criterion_text.lower()
        if contains_any(text, self.dictionary.excluded_trait_terms) and not contains_any(
            text, self.dictionary.requirement_terms
        ):
            return False
        return True

    def _evaluate_biomarkers(
        self,
        criterion_text: str,
        criterion_type: str,
        profile: PatientProfile
    ) -> List[EvaluationResult]:
        results = []
        required = self._status_is_required(criterion_text, criterion_type)

        for marker, stated_status, matched in self._stated_statuses(criterion_text):
            patient_status = self._patient_marker_status(marker, profile)
            if patient_status == UNKNOWN:
                continue

            if required and patient_status != stated_status:
                explanation = (
                    f"{marker}: patient recorded {patient_status}, "
                    f"but trial requires {marker} {stated_status} ({matched})"
                )
            elif not required and patient_status == stated_status:
                explanation = f"{marker}: patient recorded {patient_status}, which this trial excludes ({matched})"
            else:
                continue

            results.append(EvaluationResult(
                status="violated",
                criterion=criterion_text,
                criterion_type=criterion_type,
                kind=ViolationKind.BIOMARKER,
                patient_value=profile.biomarkers.get(marker, patient_status),
                explanation=explanation,
                keywords=self._marker_keywords(marker),
            ))
        return results

    def _marker_keywords(self, marker: str) -> List[str]:
        if marker == "HR":
            return ["hormone receptor", "hr", "er", "pr"]
        if marker == "PDL1":
            return ["pd-l1", "pdl1"]
        return [marker.lower()]

    # -------------------------------------------------------------------------
    # PERFORMANCE STATUS EVALUATOR (ECOG)
    # ECOG 0-5 scale: lower is better (0=fully active, 5=dead)
    # -------------------------------------------------------------------------

    def _evaluate_performance_status(
        self,
        criterion_text: str,
        criterion_type: str,
        profile: PatientProfile
    ) -> EvaluationResult:
        text = criterion_text.lower()
        if not re.search(self.patterns.ecog_context, text):
            return EvaluationResult(status="unknown")

        patient_ecog = parse_ecog(profile.performance_status)
        if patient_ecog is None or patient_ecog > 5:
            return EvaluationResult(status="unknown", explanation="Patient ECOG status not provided")

        ceiling, floor = self._extract_ecog_limits(text, criterion_type)

        if ceiling is not None and patient_ecog > ceiling:
            explanation = f"ECOG: patient recorded ECOG {patient_ecog}, above the allowed maximum of {ceiling}"
        elif floor is not None and patient_ecog >= floor:
            explanation = f"ECOG: patient recorded ECOG {patient_ecog}, trial excludes ECOG {floor} or higher"
        else:
            return EvaluationResult(
                status="satisfied",
                criterion=criterion_text,
                criterion_type=criterion_type,
                patient_value=str(patient_ecog),
            )

        return EvaluationResult(
            status="violated",
            criterion=criterion_text,
            criterion_type=criterion_type,
            kind=ViolationKind.PERFORMANCE_STATUS,
            patient_value=f"ECOG {patient_ecog}",
            explanation=explanation,
            keywords=["ecog", "performance status"],
        )

    def _extract_ecog_limits(self, text: str, criterion_type: str) -> Tuple[Optional[int], Optional[int]]:
        """
        Returns (ceiling, exclusion_floor).
        A ceiling is violated by any grade above it; an exclusion floor by any grade at or above it.
        """
        text = self._clauses_about(text, self.patterns.ecog_context)
        range_match = re.search(self.patterns.ecog_range, text)
        if range_match:
            return max(int(range_match.group(1)), int(range_match.group(2))), None

        for pattern in self.patterns.ecog_at_most:
            match = re.search(pattern, text)
            if match:
                return int(match.group(1)), None

        match = re.search(self.patterns.ecog_less_than, text)
        if match:
            return max(int(match.group(1)) - 1, 0), None

        # Floors only make sense as exclusions ("ECOG >= 3" excludes)
        if criterion_type == "exclusion":
            for pattern in self.patterns.ecog_at_least:
                match = re.search(pattern, text)
                if match:
                    return None, int(match.group(1))
            match = re.search(self.patterns.ecog_greater_than, text)
            if match:
                return None, int(match.group(1)) + 1
            return None, None

        # Inclusion "ECOG performance status 0 (fully active)" requires exactly that grade or better
        if re.search(r"[>≥]|greater|higher|worse|at least", text):
            return None, None
        match = re.search(self.patterns.ecog_single, text)
        if match:
            return int(match.group(1)), None
        return None, None

    # -------------------------------------------------------------------------
    # AGE EVALUATOR (inclusion criteria only)
    # -------------------------------------------------------------------------

    def _evaluate_age(
        self,
        criterion_text: str,
        criterion_type: str,
        profile: PatientProfile
    ) -> EvaluationResult:
        text = criterion_text.lower()
        if criterion_type != "inclusion" or not re.search(self.patterns.age_context, text):
            return EvaluationResult(status="unknown")

        # Age 0 is the "not extracted" sentinel
        if profile.age <= 0:
            return EvaluationResult(status="unknown", explanation="Patient age not provided")

        min_age, max_age = self._extract_age_range(text)
        age = profile.age

        if min_age is not None and age < min_age:
            explanation = f"Age: patient is {age}, below the minimum age of {min_age}"
        elif max_age is not None and age > max_age:
            explanation = f"Age: patient is {age}, above the maximum age of {max_age}"
        else:
            return EvaluationResult(status="satisfied", criterion=criterion_text, patient_value=str(age))

        return EvaluationResult(
            status="violated",
            criterion=criterion_text,
            criterion_type=criterion_type,
            kind=ViolationKind.AGE,
            patient_value=str(age),
            explanation=explanation,
            keywords=["age"],
        )

    def _extract_age_range(self, text: str) -> Tuple[Optional[int], Optional[int]]:
        """Extract age range from the age clauses of a criterion."""
        text = self._clauses_about(text, self.patterns.age_context)
        match = re.search(self.patterns.age_range, text)
        if match:
            low, high = int(match.group(1)), int(match.group(2))
            return min(low, high), max(low, high)

        min_age, max_age = None, None
        for pattern in self.patterns.age_minimum:
            match = re.search(pattern, text)
            if match:
                min_age = int(match.group(1))
                break
        for pattern in self.patterns.age_maximum:
            match = re.search(pattern, text)
            if match:
                max_age = int(match.group(1))
                break
        return min_age, max_age

    # -------------------------------------------------------------------------
    # PRIOR THERAPY EVALUATOR (exclusion criteria only)
    # -------------------------------------------------------------------------

    def _therapy_terms(self, text: str) -> List[str]:
        terms: List[str] = []
        for group in re.findall(self.patterns.parenthetical, text):
            for item in re.split(r",|;|\bor\b|\band\b", group):
                item = re.sub(r"\betc\.?", "", item).strip(" .")
                if len(item) >= 4 and not item.isdigit():
                    terms.append(item)
        terms.extend(re.findall(self.patterns.drug_name, text))
        terms.extend(k for k in self.dictionary.therapy_keywords if k in text)
        # Preserve order, drop duplicates
        return list(dict.fromkeys(terms))

    def _evaluate_prior_therapy(
        self,
        criterion_text: str,
        criterion_type: str,
        profile: PatientProfile
    ) -> EvaluationResult:
        text = criterion_text.lower()
        if criterion_type != "exclusion" or not re.search(self.patterns.prior_context, text):
            return EvaluationResult(status="unknown")
        if text.lstrip().startswith("no ") or contains_any(text, self.dictionary.therapy_qualifier_terms):
            # Timing/line-of-therapy qualifiers cannot be confirmed from the profile
            return EvaluationResult(status="unknown")

        history = [t.lower() for t in [*profile.prior_treatments, *profile.medications]]
        if not history:
            return EvaluationResult(status="unknown", explanation="Prior treatments not provided")

        for term in self._therapy_terms(text):
            for treatment in history:
                if term in treatment:
                    return EvaluationResult(
                        status="violated",
                        criterion=criterion_text,
                        criterion_type=criterion_type,
                        kind=ViolationKind.PRIOR_THERAPY,
                        patient_value=treatment,
                        explanation=f"Prior therapy: patient history includes '{treatment}', which this trial excludes",
                        keywords=[term],
                    )
        return EvaluationResult(status="satisfied", criterion=criterion_text)

    # -------------------------------------------------------------------------
    # METASTATIC DISEASE EVALUATOR (exclusion criteria only)
    # -------------------------------------------------------------------------

    def _patient_is_metastatic(self, profile: PatientProfile) -> bool:
        stage = (profile.stage or "").strip()
        if re.fullmatch(r"Stage IV[A-C]?", stage):
            return True
        return any(mentions_metastatic(c) for c in profile.conditions)

    def _evaluate_metastatic(
        self,
        criterion_text: str,
        criterion_type: str,
        profile: PatientProfile
    ) -> EvaluationResult:
        text = criterion_text.lower()
        if criterion_type != "exclusion":
            return EvaluationResult(status="unknown")
        if not re.search(r"\bmetastatic disease\b|\bdistant metastas[ie]s\b|\bstage iv\b", text):
            return EvaluationResult(status="unknown")
        if contains_any(text, self.dictionary.metastasis_site_terms) or contains_any(
            text, self.dictionary.non_metastatic_terms
        ):
            return EvaluationResult(status="unknown")

        if not self._patient_is_metastatic(profile):
            return EvaluationResult(status="unknown")

        return EvaluationResult(
            status="violated",
            criterion=criterion_text,
            criterion_type=criterion_type,
            kind=ViolationKind.METASTATIC,
            patient_value=profile.stage or "metastatic",
            explanation="Metastatic disease: patient has metastatic / Stage IV disease, which this trial excludes",
            keywords=["metastatic", "metastases", "metastasis", "stage iv"],
        )


def create_evaluator() -> HardExclusionEvaluator:
    """Create a new hard-exclusion evaluator instance."""
    return HardExclusionEvaluator()
