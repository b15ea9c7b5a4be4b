# src/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from api.routes import router
from config import settings
from engine.archive_fetcher import ArchiveFetcher
from engine.circuit_breaker import CircuitBreaker
from engine.db import SessionLocal, engine, init_db
from engine.errors import ProviderUnavailable
from engine.job_manager import JobManager
from engine.scan_engine import ScanEngine
from providers.github_adapter import GitHubAdapter
from providers.gitlab_adapter import GitLabAdapter
from utils.archive_utils import purge_stale_working_directories
import logging
import uuid


# Configure structured logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s %(message)s'
)


def build_job_manager(session_factory) -> JobManager:
    providers = {
        "github": GitHubAdapter(settings.GITHUB_API_URL, settings.GITHUB_TOKEN, timeout=settings.HTTP_TIMEOUT),
        "gitlab": GitLabAdapter(settings.GITLAB_API_URL, settings.GITLAB_TOKEN, timeout=settings.HTTP_TIMEOUT),
    }
    breaker = CircuitBreaker(
        max_failures=settings.CIRCUIT_MAX_FAILURES,
        retry_attempts=settings.CIRCUIT_RETRY_ATTEMPTS,
        timeout=settings.CIRCUIT_TIMEOUT_SECONDS,
        backoff_unit=settings.CIRCUIT_BACKOFF_SECONDS,
        retry_on=(ProviderUnavailable,),
        name="providers",
    )
    scan_engine = ScanEngine(session_factory, ArchiveFetcher(providers, breaker), settings.SCAN_SCRATCH_DIR)
    return JobManager(session_factory, scan_engine, poll_interval=settings.WORKER_POLL_INTERVAL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(engine)
    purge_stale_working_directories(settings.SCAN_SCRATCH_DIR, settings.STALE_WORKDIR_SECONDS)
    job_manager = build_job_manager(SessionLocal)
    job_manager.recover_interrupted()
    job_manager.start(settings.SCAN_WORKERS)
    app.state.session_factory = SessionLocal
    app.state.job_manager = job_manager
    logging.info(f"{settings.APP_NAME} started.")
    yield
    job_manager.stop(timeout=10)
    for adapter in job_manager.scan_engine.fetcher.providers.values():
        adapter.close()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)


@app.middleware("http")
async def add_trace_id_and_log(request: Request, call_next):
    trace_id = str(uuid.uuid4())
    request.state.trace_id = trace_id
    logging.info(f"[trace_id={trace_id}] Incoming request: {request.method} {request.url}")
    try:
        response = await call_next(request)
    except Exception as exc:
        logging.error(f"[trace_id={trace_id}] Unhandled error: {exc}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error", "trace_id": trace_id}
        )
    response.headers["X-Trace-Id"] = trace_id
    return response

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    trace_id = getattr(request.state, "trace_id", str(uuid.uuid4()))
    logging.error(f"[trace_id={trace_id}] Exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(exc), "trace_id": trace_id}
    )

app.include_router(router)
