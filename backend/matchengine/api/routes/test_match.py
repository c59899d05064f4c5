import json

import pytest
from fastapi.testclient import TestClient

from main import app
from matchengine.api.routes.match import get_pipeline
from matchengine.services.consultation_history import ConsultationHistory
from matchengine.services.matching_pipeline import MatchingPipeline
from matchengine.validation import get_fallback_trials


class _LLM:
    async def generate_json(self, prompt, system_prompt=None, temperature=0.3):
        if "Extract patient data" in prompt:
            return json.dumps({
                "age": 61,
                "gender": "female",
                "conditions": ["breast cancer"],
                "stage": "IIIa",
                "biomarkers": {"her2": "3+", "ER": "positive"},
            })
        return json.dumps({"matchScore": 70, "confidenceLevel": "medium", "explanation": "Plausible fit."})


class _Repository:
    async def query(self, profile):
        return [t.model_dump(by_alias=True) for t in get_fallback_trials()]


@pytest.fixture
def client():
    pipeline = MatchingPipeline(_LLM(), _Repository(), history=ConsultationHistory())
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "running"
    assert client.get("/health").json() == {"status": "healthy"}


def test_blank_notes_are_rejected(client):
    response = client.post("/api/v1/match", json={"patientText": "   "})
    assert response.status_code == 400
    assert response.json()["detail"] == "patientText is required"


def test_match_response_shape(client):
    response = client.post("/api/v1/match", json={"patientText": "61F, ER+ HER2 3+ breast cancer, stage 3a", "sessionId": "abc"})
    assert response.status_code == 200

    body = response.json()
    assert body["success"] is True
    assert body["sessionId"] == "abc"
    assert body["profile"]["stage"] == "Stage IIIA"
    assert "HER2" in body["profile"]["biomarkers"]
    assert body["profileValidation"]["isValid"] is True
    assert body["usedFallbackTrials"] is False
    assert [m["rank"] for m in body["matches"]] == [1, 2, 3]
    assert {m["trial"]["nctId"] for m in body["matches"]} == {"NCT05123456", "NCT05234567", "NCT05345678"}
    assert all("guardrailOverridden" in m for m in body["matches"])


def test_history_endpoint(client):
    client.post("/api/v1/match", json={"patientText": "first visit", "sessionId": "abc"})
    client.post("/api/v1/match", json={"patientText": "second visit", "sessionId": "abc"})

    records = client.get("/api/v1/match/history/abc").json()
    assert [r["originalNotes"] for r in records] == ["second visit", "first visit"]
    assert records[0]["matchType"] == "Med"
    assert records[0]["patientSummary"].startswith("61yo female")

    assert client.get("/api/v1/match/history/unknown").json() == []
