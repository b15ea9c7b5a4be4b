import io
import os
import zipfile

import pytest

from engine import config_store
from engine.archive_fetcher import ArchiveFetcher
from engine.circuit_breaker import CircuitBreaker
from engine.db import build_engine, build_session_factory, init_db
from engine.errors import ProviderUnavailable, RepositoryNotFound
from engine.job_manager import JobManager
from engine.scan_engine import ScanEngine


def make_zip(files: dict, root: str = "octo-app-1a2b3c/") -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(root + name, content)
    return buffer.getvalue()


def write_tree(base, files: dict):
    for name, content in files.items():
        path = os.path.join(str(base), name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            f.write(content)
    return str(base)


class FakeProvider:
    """In-memory git provider serving prebuilt ZIP archives by slug."""

    name = "fake"

    def __init__(self, archives=None, failures=0):
        self.archives = archives or {}
        self.failures = failures
        self.calls = []

    def get_default_branch(self, slug):
        self.calls.append(("branch", slug))
        if self.failures:
            self.failures -= 1
            raise ProviderUnavailable("provider is down")
        if slug not in self.archives:
            raise RepositoryNotFound(f"{slug} not found")
        return "main"

    def get_archive_stream(self, slug, ref):
        self.calls.append(("archive", slug, ref))
        data = self.archives[slug]
        for i in range(0, len(data), 1024):
            yield data[i:i + 1024]


class RecordingFetcher(ArchiveFetcher):
    def __init__(self, providers, breaker=None):
        super().__init__(providers, breaker)
        self.working_dirs = []

    def fetch(self, provider, slug, working_dir):
        self.working_dirs.append(working_dir)
        return super().fetch(provider, slug, working_dir)


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'scans.db'}")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def add_repository(session_factory):
    def _add(repository_id, full_path="octo/app", provider="github"):
        db = session_factory()
        try:
            config_store.upsert_repository(db, {
                "id": repository_id,
                "name": full_path.split("/")[-1],
                "full_path": full_path,
                "provider": provider,
                "monitored_branches": ["main"],
                "open_pull_requests": 0,
            })
        finally:
            db.close()
        return repository_id
    return _add


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def scratch_root(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return str(path)


@pytest.fixture
def fetcher(provider):
    breaker = CircuitBreaker(retry_on=(ProviderUnavailable,), backoff_unit=0, sleep=lambda _: None)
    return RecordingFetcher({"github": provider, "gitlab": provider}, breaker)


@pytest.fixture
def job_manager(session_factory, fetcher, scratch_root):
    manager = JobManager(session_factory, ScanEngine(session_factory, fetcher, scratch_root), poll_interval=0.05)
    yield manager
    manager.stop(timeout=5)
