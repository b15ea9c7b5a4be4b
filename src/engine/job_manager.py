# src/engine/job_manager.py
"""
JobManager: durable scan job queue backed by the scan_jobs table, plus the
worker pool that drains it.
"""

import logging
import threading
import time
import uuid

from engine import config_store
from engine.errors import RepositoryUnknown, UnsupportedProvider
from engine.models import ScanJob, utcnow
from engine.scan_engine import ScanEngine

QUEUED = "queued"
RUNNING = "running"
DONE = "done"
FAILED = "failed"


class JobManager:
    def __init__(self, session_factory, scan_engine: ScanEngine, poll_interval: float = 1.0):
        self.session_factory = session_factory
        self.scan_engine = scan_engine
        self.poll_interval = poll_interval
        self.lock = threading.Lock()
        self._work_available = threading.Condition()
        self._stop = threading.Event()
        self._workers = []

    def submit(self, repository_id: str, provider: str, slug: str = None) -> str:
        if not self.scan_engine.fetcher.supports(provider):
            raise UnsupportedProvider(f"Unsupported provider: {provider}")
        db = self.session_factory()
        try:
            repository = config_store.find_repository_by_id(db, repository_id)
            if repository is None:
                raise RepositoryUnknown(f"Repository with ID {repository_id} not found.")
            with self.lock:
                # One queued/running scan per repository; its config row is a single upsert target
                active = config_store.find_active_job(db, repository_id)
                if active is not None:
                    logging.info(f"[job_id={active.job_id}] Scan already {active.status} for repository_id={repository_id}")
                    return active.job_id
                job_id = str(uuid.uuid4())
                db.add(ScanJob(
                    job_id=job_id,
                    repository_id=repository_id,
                    provider=provider,
                    slug=slug or repository.full_path,
                    status=QUEUED,
                    created_at=utcnow(),
                ))
                db.commit()
        finally:
            db.close()
        logging.info(f"[job_id={job_id}] Queued scan job. repository_id={repository_id} provider={provider}")
        with self._work_available:
            self._work_available.notify()
        return job_id

    def _claim_next(self, worker: str):
        db = self.session_factory()
        try:
            candidates = (
                db.query(ScanJob.job_id)
                .filter(ScanJob.status == QUEUED)
                .order_by(ScanJob.created_at.asc(), ScanJob.id.asc())
                .limit(10)
                .all()
            )
            for (job_id,) in candidates:
                # Conditional update: only one claimer can move a row out of 'queued'
                claimed = (
                    db.query(ScanJob)
                    .filter(ScanJob.job_id == job_id, ScanJob.status == QUEUED)
                    .update({"status": RUNNING, "worker": worker, "started_at": utcnow()},
                            synchronize_session=False)
                )
                db.commit()
                if claimed == 1:
                    job = config_store.find_job(db, job_id)
                    return {
                        "job_id": job.job_id,
                        "repository_id": job.repository_id,
                        "provider": job.provider,
                        "slug": job.slug,
                    }
            return None
        finally:
            db.close()

    def _finish(self, job_id: str, status: str, error: str = None):
        db = self.session_factory()
        try:
            job = config_store.find_job(db, job_id)
            if job:
                job.status = status
                job.error = error
                job.finished_at = utcnow()
                db.commit()
        finally:
            db.close()

    def _record_outcome(self, job_id: str, status: str, error: str = None, attempts: int = 2) -> bool:
        for attempt in range(1, attempts + 1):
            try:
                self._finish(job_id, status, error)
                return True
            except Exception as e:
                logging.warning(f"[job_id={job_id}] Could not store status '{status}' (attempt {attempt}): {e}")
                if attempt < attempts:
                    time.sleep(self.poll_interval)
        # Left 'running'; recover_interrupted marks it failed on the next start
        logging.error(f"[job_id={job_id}] Giving up storing status '{status}'")
        return False

    def _run_job(self, job: dict):
        job_id = job["job_id"]
        repository_id = job["repository_id"]
        logging.info(f"[job_id={job_id}] Started scan job. repository_id={repository_id}")
        try:
            config = self.scan_engine.scan_repository(repository_id, job["provider"], job["slug"])
        except Exception as e:
            self._record_outcome(job_id, FAILED, error=f"{type(e).__name__}: {e}")
            logging.error(f"[job_id={job_id}] Scan job failed for repository_id={repository_id}: {e}")
        else:
            if not self._record_outcome(job_id, DONE):
                return
            logging.info(
                f"[job_id={job_id}] Completed scan job. repository_id={repository_id} "
                f"frameworks={len(config['test_frameworks'])}"
            )

    def process_next(self, worker: str = "inline"):
        """Claim and run one queued job in the calling thread. Returns its id, or None if idle."""
        job = self._claim_next(worker)
        if job is None:
            return None
        self._run_job(job)
        return job["job_id"]

    def _worker_loop(self, name: str):
        while not self._stop.is_set():
            try:
                job_id = self.process_next(worker=name)
            except Exception as e:
                logging.error(f"[worker={name}] Could not claim a scan job: {e}")
                job_id = None
            if job_id is None:
                with self._work_available:
                    self._work_available.wait(self.poll_interval)

    def start(self, workers: int = 2):
        self._stop.clear()
        for i in range(workers):
            thread = threading.Thread(target=self._worker_loop, args=(f"scan-worker-{i}",),
                                      name=f"scan-worker-{i}", daemon=True)
            thread.start()
            self._workers.append(thread)
        logging.info(f"Started {workers} scan workers")

    def stop(self, timeout: float = None):
        self._stop.set()
        with self._work_available:
            self._work_available.notify_all()
        for thread in self._workers:
            thread.join(timeout)
        self._workers = []

    def recover_interrupted(self) -> int:
        """Jobs left 'running' by a dead process can never finish; mark them failed."""
        db = self.session_factory()
        try:
            count = (
                db.query(ScanJob)
                .filter(ScanJob.status == RUNNING)
                .update({"status": FAILED, "error": "Interrupted before completion", "finished_at": utcnow()},
                        synchronize_session=False)
            )
            db.commit()
        finally:
            db.close()
        if count:
            logging.warning(f"Marked {count} interrupted scan job(s) as failed")
        return count

    def get_status(self, job_id) -> dict:
        db = self.session_factory()
        try:
            job = config_store.find_job(db, job_id)
            if job:
                return config_store.job_to_dict(job)
            return {"status": "not_found", "result": None}
        finally:
            db.close()
