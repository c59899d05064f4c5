import asyncio
import random

from matchengine.services.trial_repository import (
    GeneratedTrialRepository,
    StaticTrialRepository,
    create_trial_repository,
    detect_cancer_type,
)
from matchengine.validation import normalize_profile, normalize_trials, validate_trials


def _query(repository, **profile_fields):
    return asyncio.run(repository.query(normalize_profile(profile_fields)))


def test_detect_cancer_type():
    assert detect_cancer_type(normalize_profile({"conditions": ["Invasive ductal carcinoma of the breast"]})) == "breast"
    assert detect_cancer_type(normalize_profile({"conditions": ["NSCLC adenocarcinoma"]})) == "lung"
    assert detect_cancer_type(normalize_profile({"conditions": ["Rectal cancer"]})) == "colorectal"
    assert detect_cancer_type(normalize_profile({"conditions": ["Prostate adenocarcinoma"]})) == "prostate"
    assert detect_cancer_type(normalize_profile({"conditions": ["Glioblastoma"]})) == "other"


def test_her2_positive_prefilter():
    repository = StaticTrialRepository(rng=random.Random(1))
    trials = _query(repository, conditions=["breast cancer"], biomarkers={"HER2": "positive"})

    assert len(trials) == 4
    for trial in trials:
        text = f"{trial['title']} {trial['briefSummary']} {' '.join(trial['inclusionCriteria'])}".lower()
        assert "her2+" in text or "her2-positive" in text


def test_her2_negative_prefilter():
    repository = StaticTrialRepository(rng=random.Random(1))
    trials = _query(repository, conditions=["breast cancer"], biomarkers={"HER2": "negative"})
    assert {t["nctId"] for t in trials} == {"NCT06140017", "NCT06152246", "NCT06163379"}


def test_unknown_her2_keeps_all_trials_for_cancer_type():
    repository = StaticTrialRepository(rng=random.Random(1))
    trials = _query(repository, conditions=["breast cancer"])
    assert len(trials) == 7
    assert all(t["cancerType"] == "breast" for t in trials)


def test_unknown_cancer_type_uses_whole_corpus_up_to_limit():
    repository = StaticTrialRepository(limit=8, rng=random.Random(1))
    trials = _query(repository, conditions=["glioblastoma"])
    assert len(trials) == 8
    assert len(repository.trials) == 16


def test_returned_trials_do_not_alias_corpus():
    repository = StaticTrialRepository(rng=random.Random(1))
    trials = _query(repository, conditions=["lung cancer"])
    trials[0]["title"] = "changed"
    assert all(t["title"] != "changed" for t in repository.trials)


def test_static_batch_passes_validation():
    repository = StaticTrialRepository(rng=random.Random(3))
    raw = _query(repository, conditions=["breast cancer"], biomarkers={"HER2": "positive"})
    assert validate_trials(normalize_trials(raw)).is_valid


def test_generated_repository_asks_the_model():
    class _LLM:
        def __init__(self):
            self.prompts = []

        async def generate_json(self, prompt, system_prompt=None, temperature=0.3):
            self.prompts.append(prompt)
            return '[{"nctId": "NCT00000001"}]'

    llm = _LLM()
    repository = GeneratedTrialRepository(llm, timeout=1)
    result = _query(repository, age=52, conditions=["breast cancer"])

    assert result == [{"nctId": "NCT00000001"}]
    assert "breast cancer" in llm.prompts[0]


def test_factory_selects_source():
    assert isinstance(create_trial_repository(None, "generated"), GeneratedTrialRepository)
    assert isinstance(create_trial_repository(None, "static"), StaticTrialRepository)
    assert isinstance(create_trial_repository(None, "unknown"), StaticTrialRepository)
