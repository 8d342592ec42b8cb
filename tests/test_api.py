"""
FastAPI 엔드포인트 테스트

Fake 협력자로 조립한 오케스트레이터를 create_app에 주입합니다.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import SAMPLE_JOB_URL
from exceptions import InfrastructureError, ProviderError
from main import STATUS_BY_CATEGORY, create_app


@pytest.fixture
def client(test_settings, harness):
    app = create_app(test_settings, orchestrator=harness.orchestrator, metrics=harness.metrics)
    with TestClient(app) as test_client:
        yield test_client


def post_pipeline(client, job_url=SAMPLE_JOB_URL, content=b"%PDF-1.7 fake resume", **data):
    return client.post(
        "/pipelines",
        files={"file": ("jane_doe_resume.pdf", content, "application/pdf")},
        data={"job_url": job_url, **data},
    )


class TestHealth:

    def test_health(self, client, test_settings):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["env"] == "test"
        assert body["storage_backend"] == "memory"

    def test_metrics(self, client):
        post_pipeline(client)
        body = client.get("/metrics", params={"minutes": 5}).json()

        assert body["pipelines"]["total_requests"] == 1
        assert set(body) == {"pipelines", "guardrails", "llm"}

    def test_metrics_window_validated(self, client):
        assert client.get("/metrics", params={"minutes": 0}).status_code == 422


class TestRunPipeline:

    def test_success(self, client, harness):
        response = post_pipeline(client, company_name="Initech")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["session"]["status"] == "completed"
        assert [d["file_name"] for d in body["documents"]] == [
            "CV_Jane_Doe_Senior_Backend_Engineer.docx",
            "CoverLetter_Jane_Doe_Initech.docx",
        ]
        assert len(harness.blob_store) == 2

    def test_guardrail_violation_is_422(self, client):
        response = post_pipeline(client, job_url="not a url")

        assert response.status_code == 422
        body = response.json()
        assert body["error_category"] == "guardrail_violation"
        assert body["stage_outcomes"][-1]["violation_type"] == "InvalidUrlFormat"

    def test_collaborator_error_is_502(self, client, fake_provider):
        fake_provider.responses["match"] = ProviderError("OpenAI returned 503")

        response = post_pipeline(client)
        assert response.status_code == 502
        assert response.json()["error_category"] == "collaborator_error"

    def test_infrastructure_error_is_503(self, client, harness):
        with patch.object(
            harness.session_store, "create", AsyncMock(side_effect=InfrastructureError("store down"))
        ):
            response = post_pipeline(client)

        assert response.status_code == 503
        assert response.json()["session"] is None

    def test_missing_file(self, client):
        response = client.post("/pipelines", data={"job_url": SAMPLE_JOB_URL})
        assert response.status_code == 422

    def test_status_map(self):
        assert sorted(STATUS_BY_CATEGORY.values()) == [409, 422, 502, 503]


class TestSessions:

    def test_get_session(self, client):
        token = post_pipeline(client).json()["session"]["token"]

        response = client.get(f"/sessions/{token}")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["processing_log"][0] == "Pipeline started"
        assert len(body["documents"]) == 2

    def test_unknown_session(self, client):
        assert client.get("/sessions/unknown").status_code == 404

    def test_cancel_completed(self, client):
        token = post_pipeline(client).json()["session"]["token"]

        assert client.post(f"/sessions/{token}/cancel").json() == {"cancelled": False}

    def test_cancel_unknown(self, client):
        assert client.post("/sessions/unknown/cancel").json() == {"cancelled": False}

    def test_expire_sessions(self, client):
        post_pipeline(client)
        assert client.post("/maintenance/expire-sessions").json() == {"expired": 0}
