import json

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_db, get_job_manager
from conftest import make_zip
from main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def wired_app(job_manager, session_factory):
    def _db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_job_manager] = lambda: job_manager
    app.dependency_overrides[get_db] = _db
    yield
    app.dependency_overrides.clear()


def test_health_check():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert "x-trace-id" in resp.headers


def test_scan_requires_provider(add_repository):
    add_repository("github:1")
    resp = client.post("/repositories/github:1/scan")
    assert resp.status_code == 400
    assert resp.json()["error"] == "Provider is required"


def test_scan_unknown_repository():
    resp = client.post("/repositories/github:404/scan?provider=github")
    assert resp.status_code == 404


def test_scan_unsupported_provider(add_repository):
    add_repository("github:1")
    resp = client.post("/repositories/github:1/scan?provider=svn")
    assert resp.status_code == 400


def test_scan_submission_and_status(add_repository, job_manager, provider):
    add_repository("github:1", full_path="octo/app")
    provider.archives["octo/app"] = make_zip({"package.json": json.dumps({"devDependencies": {"jest": "^29.0.0"}})})

    resp = client.post("/repositories/github:1/scan?provider=github")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "queued"
    assert data["message"] == "Scan job enqueued"

    job_manager.process_next()
    status = client.get(f"/scan/job/{data['job_id']}").json()
    assert status["status"] == "done"

    config = client.get("/repositories/github:1/config")
    assert config.status_code == 200
    body = config.json()
    assert body["repositoryId"] == "github:1"
    assert body["testFrameworks"] == [{"type": "jest", "version": "^29.0.0"}]
    assert body["testFolderPatterns"]["jest"] == ["__tests__/", "src/components/"]
    assert body["coverageFolderPath"] == "coverage/"


def test_repository_ids_with_slashes(add_repository):
    add_repository("gitlab/group/app", full_path="group/app", provider="gitlab")
    resp = client.post("/repositories/gitlab/group/app/scan?provider=gitlab")
    assert resp.status_code == 200


def test_config_not_found():
    resp = client.get("/repositories/github:1/config")
    assert resp.status_code == 404


def test_set_test_folder_preference(add_repository):
    add_repository("github:1")
    resp = client.put("/repositories/github:1/config/test-folder-preference", json={"preference": {"unit": "qa/"}})
    assert resp.status_code == 200
    assert resp.json()["userTestFolderPreference"] == {"unit": "qa/"}
    assert client.get("/repositories/github:1/config").json()["userTestFolderPreference"] == {"unit": "qa/"}


def test_set_preference_unknown_repository():
    resp = client.put("/repositories/github:404/config/test-folder-preference", json={"preference": "tests/"})
    assert resp.status_code == 404


def test_scan_history(add_repository):
    add_repository("github:1")
    add_repository("github:2")
    client.post("/repositories/github:1/scan?provider=github")
    client.post("/repositories/github:2/scan?provider=github")

    resp = client.get("/scan/history?repository_id=github:1")
    assert resp.status_code == 200
    history = resp.json()
    assert [job["repository_id"] for job in history] == ["github:1"]
    assert len(client.get("/scan/history?status=queued").json()) == 2


def test_job_status_not_found():
    resp = client.get("/scan/job/doesnotexist")
    assert resp.status_code == 200
    assert resp.json()["status"] == "not_found"
