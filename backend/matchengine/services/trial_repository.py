"""
Trial sources.

Both repositories return *raw* trial data (untrusted dicts); normalization
and validation happen in the pipeline. The static corpus is read-only and
loaded once per repository instance.
"""

import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from ..core.config import settings
from ..schemas.patient import PatientProfile
from ..matching.rules import NEGATIVE, POSITIVE, biomarker_status
from ..prompts.generate_mock_trials import SYSTEM_PROMPT, build_mock_trials_prompt
from .llm_service import request_json

logger = logging.getLogger(__name__)

DEFAULT_CORPUS_PATH = Path(__file__).resolve().parent.parent / "data" / "clinical_trials.json"

# Cancer type -> terms that identify it in the patient's conditions (checked in order)
CANCER_TYPE_TERMS = {
    "breast": ["breast", "tnbc"],
    "lung": ["lung", "nsclc", "sclc"],
    "colorectal": ["colorectal", "colon", "rectal"],
    "prostate": ["prostate"],
}

HER2_POSITIVE_TERMS = ["her2+", "her2-positive", "her2 positive"]
HER2_NEGATIVE_TERMS = ["her2-negative", "her2 negative", "her2-low", "triple negative", "triple-negative", "tnbc"]


class TrialRepository(Protocol):
    async def query(self, profile: PatientProfile) -> Any:
        """Return candidate trials for the patient as raw, untrusted data."""
        ...


def detect_cancer_type(profile: PatientProfile) -> str:
    conditions = " ".join(profile.conditions).lower()
    for cancer_type, terms in CANCER_TYPE_TERMS.items():
        if any(term in conditions for term in terms):
            return cancer_type
    return "other"


def _trial_text(trial: Dict[str, Any]) -> str:
    """Title, summary and inclusion criteria: where a trial states which patients it wants."""
    criteria = trial.get("inclusionCriteria") or []
    return " ".join([str(trial.get("title", "")), str(trial.get("briefSummary", "")), *map(str, criteria)]).lower()


class StaticTrialRepository:
    """Bundled trial corpus, filtered by cancer type and HER2 status."""

    def __init__(
        self,
        path: Optional[Path] = None,
        limit: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.path = Path(path) if path else DEFAULT_CORPUS_PATH
        self.limit = settings.STATIC_TRIAL_LIMIT if limit is None else limit
        self.rng = rng or random.Random()
        self._trials: Optional[List[Dict[str, Any]]] = None

    @property
    def trials(self) -> List[Dict[str, Any]]:
        if self._trials is None:
            with open(self.path, encoding="utf-8") as f:
                self._trials = json.load(f)["trials"]
            logger.info("Loaded %d trials from %s", len(self._trials), self.path.name)
        return self._trials

    def _filter_by_her2(self, profile: PatientProfile, trials: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        status = biomarker_status(profile.biomarkers.get("HER2"))
        if status == POSITIVE:
            terms, label = HER2_POSITIVE_TERMS, "HER2+"
        elif status == NEGATIVE:
            terms, label = HER2_NEGATIVE_TERMS, "HER2-"
        else:
            logger.info("HER2 status unknown, keeping all trials for assessment")
            return trials

        filtered = [t for t in trials if any(term in _trial_text(t) for term in terms)]
        if not filtered:
            logger.warning("No %s trials found, keeping all trials", label)
            return trials
        logger.info("Pre-filtered to %d %s trials", len(filtered), label)
        return filtered

    async def query(self, profile: PatientProfile) -> List[Dict[str, Any]]:
        cancer_type = detect_cancer_type(profile)
        relevant = [t for t in self.trials if t.get("cancerType") == cancer_type]
        logger.info("Detected cancer type %s, %d matching trials", cancer_type, len(relevant))

        if not relevant:
            logger.warning("No trials found for %s, falling back to all trials", cancer_type)
            relevant = list(self.trials)

        relevant = self._filter_by_her2(profile, relevant)

        # Copies, so callers cannot mutate the corpus
        selected = [dict(t) for t in relevant]
        self.rng.shuffle(selected)
        return selected[:self.limit]


class GeneratedTrialRepository:
    """Demo trials generated by the model for the extracted profile."""

    def __init__(self, llm: Any, timeout: Optional[float] = None):
        self.llm = llm
        self.timeout = timeout

    async def query(self, profile: PatientProfile) -> Any:
        context = profile.model_dump_json(by_alias=True)
        return await request_json(
            self.llm, build_mock_trials_prompt(context), SYSTEM_PROMPT, timeout=self.timeout
        )


def create_trial_repository(llm: Any, source: Optional[str] = None) -> TrialRepository:
    source = (source or settings.TRIAL_SOURCE).lower()
    if source == "generated":
        return GeneratedTrialRepository(llm)
    if source != "static":
        logger.warning("Unknown TRIAL_SOURCE %r, using the static corpus", source)
    return StaticTrialRepository()
