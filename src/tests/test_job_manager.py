import json
import os
import time

import pytest

from conftest import make_zip
from engine import config_store
from engine.errors import RepositoryUnknown, UnsupportedProvider
from engine.models import ScanJob

JEST_TREE = {"package.json": json.dumps({"devDependencies": {"jest": "^29.0.0"}})}
RSPEC_TREE = {"Gemfile": "gem 'rspec', '~> 3.12'\n", "src/features/login/.keep": ""}


def _config(session_factory, repository_id):
    db = session_factory()
    try:
        config = config_store.find_config_by_repository_id(db, repository_id)
        return config_store.config_to_dict(config) if config else None
    finally:
        db.close()


def _wait_for(job_manager, job_ids, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        statuses = [job_manager.get_status(job_id)["status"] for job_id in job_ids]
        if all(status in ("done", "failed") for status in statuses):
            return statuses
        time.sleep(0.05)
    raise AssertionError(f"jobs did not finish: {statuses}")


def test_submit_unknown_repository(job_manager):
    with pytest.raises(RepositoryUnknown):
        job_manager.submit("github:404", "github")


def test_submit_unsupported_provider(job_manager, add_repository):
    add_repository("github:1")
    with pytest.raises(UnsupportedProvider):
        job_manager.submit("github:1", "svn")


def test_submit_queues_durably(job_manager, add_repository):
    add_repository("github:1", full_path="octo/app")
    job_id = job_manager.submit("github:1", "github")
    status = job_manager.get_status(job_id)
    assert status["status"] == "queued"
    assert status["slug"] == "octo/app"
    assert status["repository_id"] == "github:1"


def test_submit_same_repository_returns_active_job(job_manager, add_repository):
    add_repository("github:1")
    assert job_manager.submit("github:1", "github") == job_manager.submit("github:1", "github")


def test_process_next_when_idle(job_manager):
    assert job_manager.process_next() is None


def test_jest_scan_end_to_end(job_manager, add_repository, provider, fetcher, session_factory, scratch_root):
    add_repository("github:1", full_path="octo/app")
    provider.archives["octo/app"] = make_zip(JEST_TREE)
    job_id = job_manager.submit("github:1", "github")

    assert job_manager.process_next() == job_id
    assert job_manager.get_status(job_id)["status"] == "done"

    config = _config(session_factory, "github:1")
    assert config["test_frameworks"] == [{"type": "jest", "version": "^29.0.0"}]
    assert config["test_folder_patterns"] == {"jest": ["__tests__/", "src/components/"]}
    assert config["coverage_folder_path"] == "coverage/"
    assert config["feature_domain_based_test"] is False
    assert os.listdir(scratch_root) == []
    assert not os.path.exists(fetcher.working_dirs[0])


def test_rspec_scan_end_to_end(job_manager, add_repository, provider, session_factory):
    add_repository("gitlab:7", full_path="group/shop", provider="gitlab")
    provider.archives["group/shop"] = make_zip(RSPEC_TREE)
    job_manager.submit("gitlab:7", "gitlab")
    job_manager.process_next()

    config = _config(session_factory, "gitlab:7")
    assert config["test_frameworks"] == [{"type": "RSpec", "version": "3.12"}]
    assert config["test_file_naming_convention"] == {"ruby": ["*_spec.rb"]}
    assert config["test_type_handling"]["unit"] == "spec/models/"
    assert config["feature_domain_based_test"] is True


def test_failed_fetch_marks_job_failed_and_cleans_up(job_manager, add_repository, session_factory, scratch_root):
    add_repository("github:1", full_path="octo/missing")
    job_id = job_manager.submit("github:1", "github")
    job_manager.process_next()

    status = job_manager.get_status(job_id)
    assert status["status"] == "failed"
    assert "RepositoryNotFound" in status["error"]
    assert _config(session_factory, "github:1") is None
    assert os.listdir(scratch_root) == []


def test_corrupt_archive_commits_nothing(job_manager, add_repository, provider, session_factory):
    add_repository("github:1", full_path="octo/app")
    provider.archives["octo/app"] = b"PK\x03\x04 truncated"
    job_id = job_manager.submit("github:1", "github")
    job_manager.process_next()
    assert job_manager.get_status(job_id)["status"] == "failed"
    assert _config(session_factory, "github:1") is None


def test_failed_job_is_not_requeued(job_manager, add_repository):
    add_repository("github:1", full_path="octo/missing")
    job_manager.submit("github:1", "github")
    job_manager.process_next()
    assert job_manager.process_next() is None


def test_rescan_is_idempotent_and_keeps_user_preference(job_manager, add_repository, provider, session_factory):
    add_repository("github:1", full_path="octo/app")
    provider.archives["octo/app"] = make_zip(JEST_TREE)
    job_manager.submit("github:1", "github")
    job_manager.process_next()
    first = _config(session_factory, "github:1")

    db = session_factory()
    try:
        config_store.set_user_test_folder_preference(db, "github:1", {"unit": "test/unit/"})
    finally:
        db.close()

    job_manager.submit("github:1", "github")
    job_manager.process_next()
    second = _config(session_factory, "github:1")

    assert second["user_test_folder_preference"] == {"unit": "test/unit/"}
    for key in ("test_frameworks", "test_folder_patterns", "test_file_naming_convention",
                "coverage_folder_path", "test_type_handling", "feature_domain_based_test", "external_test_repo"):
        assert second[key] == first[key]

    db = session_factory()
    try:
        assert db.query(ScanJob).filter(ScanJob.repository_id == "github:1").count() == 2
    finally:
        db.close()


def test_concurrent_jobs_for_distinct_repositories(job_manager, add_repository, provider, fetcher,
                                                   session_factory, scratch_root):
    add_repository("github:1", full_path="octo/web")
    add_repository("github:2", full_path="octo/shop")
    provider.archives["octo/web"] = make_zip(JEST_TREE)
    provider.archives["octo/shop"] = make_zip(RSPEC_TREE)

    job_manager.start(workers=2)
    job_ids = [job_manager.submit("github:1", "github"), job_manager.submit("github:2", "github")]
    assert _wait_for(job_manager, job_ids) == ["done", "done"]

    assert _config(session_factory, "github:1")["test_frameworks"] == [{"type": "jest", "version": "^29.0.0"}]
    assert _config(session_factory, "github:2")["test_frameworks"] == [{"type": "RSpec", "version": "3.12"}]
    assert len(set(fetcher.working_dirs)) == 2
    assert os.listdir(scratch_root) == []


def test_recover_interrupted_marks_running_jobs_failed(job_manager, add_repository, session_factory):
    add_repository("github:1")
    job_id = job_manager.submit("github:1", "github")
    db = session_factory()
    try:
        db.query(ScanJob).filter(ScanJob.job_id == job_id).update({"status": "running"})
        db.commit()
    finally:
        db.close()

    assert job_manager.recover_interrupted() == 1
    assert job_manager.get_status(job_id)["status"] == "failed"


def test_get_status_not_found(job_manager):
    assert job_manager.get_status("doesnotexist")["status"] == "not_found"


def test_status_write_is_retried_once(job_manager, add_repository, provider, monkeypatch):
    add_repository("github:1", full_path="octo/app")
    provider.archives["octo/app"] = make_zip(JEST_TREE)
    job_id = job_manager.submit("github:1", "github")

    finish = job_manager._finish
    calls = []

    def flaky_finish(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise RuntimeError("database is locked")
        return finish(*args, **kwargs)

    monkeypatch.setattr(job_manager, "_finish", flaky_finish)
    assert job_manager.process_next() == job_id
    assert len(calls) == 2
    assert job_manager.get_status(job_id)["status"] == "done"


def test_unstorable_status_leaves_job_for_recovery(job_manager, add_repository, provider, monkeypatch):
    add_repository("github:1", full_path="octo/app")
    provider.archives["octo/app"] = make_zip(JEST_TREE)
    job_id = job_manager.submit("github:1", "github")

    def locked(*args, **kwargs):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(job_manager, "_finish", locked)
    assert job_manager.process_next() == job_id
    assert job_manager.get_status(job_id)["status"] == "running"

    monkeypatch.undo()
    assert job_manager.recover_interrupted() == 1
    assert job_manager.get_status(job_id)["status"] == "failed"
