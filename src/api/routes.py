from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
import logging

from api.dependencies import get_db, get_job_manager
from api.schemas import FolderPreferenceRequest, RepositoryConfigOut, ScanSubmitted
from engine import config_store
from engine.errors import RepositoryUnknown, UnsupportedProvider
from engine.job_manager import JobManager

router = APIRouter()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.post(
    "/repositories/{repository_id:path}/scan",
    summary="Queue a test-convention scan for a repository",
    response_description="Job ID and queue status",
    tags=["Scan Jobs"],
    response_model=ScanSubmitted,
    responses={
        200: {"description": "Scan job enqueued"},
        400: {"description": "Provider missing or unsupported"},
        404: {"description": "Repository not found"},
    },
)
def submit_scan(
    repository_id: str,
    provider: Optional[str] = Query(None, description="git provider: github or gitlab"),
    job_manager: JobManager = Depends(get_job_manager),
):
    """
    Queue a scan of the repository's default branch. Returns immediately; the
    result is written to the repository config when a worker finishes the job.
    """
    if not provider:
        return _error(400, "Provider is required")
    try:
        job_id = job_manager.submit(repository_id, provider)
    except RepositoryUnknown:
        return _error(404, "Repository not found")
    except UnsupportedProvider as e:
        return _error(400, str(e))
    status = job_manager.get_status(job_id)["status"]
    logging.info(f"[job_id={job_id}] Scan requested for repository_id={repository_id}")
    return ScanSubmitted(job_id=job_id, status=status)


@router.get(
    "/scan/job/{job_id}",
    summary="Get scan job status",
    tags=["Scan Jobs"],
    response_model=dict,
)
def get_scan_job_status(job_id: str, job_manager: JobManager = Depends(get_job_manager)):
    return job_manager.get_status(job_id)


@router.get(
    "/scan/history",
    summary="Query scan job history",
    response_description="Scan jobs filtered by repository and status, newest first",
    tags=["Scan Jobs"],
    response_model=list,
)
def get_scan_history(repository_id: str = None, status: str = None, limit: int = 20, offset: int = 0,
                     db=Depends(get_db)):
    jobs = config_store.find_jobs(db, repository_id=repository_id, status=status, limit=limit, offset=offset)
    return [config_store.job_to_dict(job) for job in jobs]


@router.get(
    "/repositories/{repository_id:path}/config",
    summary="Get the detected test configuration of a repository",
    tags=["Repository Config"],
    response_model=RepositoryConfigOut,
    responses={404: {"description": "Repository has not been scanned"}},
)
def get_repository_config(repository_id: str, db=Depends(get_db)):
    config = config_store.find_config_by_repository_id(db, repository_id)
    if config is None:
        return _error(404, "Repository config not found")
    return RepositoryConfigOut(**config_store.config_to_dict(config))


@router.put(
    "/repositories/{repository_id:path}/config/test-folder-preference",
    summary="Set the user's test folder preference",
    tags=["Repository Config"],
    response_model=RepositoryConfigOut,
    responses={404: {"description": "Repository not found"}},
)
def put_test_folder_preference(repository_id: str, payload: FolderPreferenceRequest = Body(...),
                               db=Depends(get_db)):
    """
    Store a user override for where tests live. Scans never compute this field
    and carry it over when they replace the rest of the config.
    """
    try:
        config = config_store.set_user_test_folder_preference(db, repository_id, payload.preference)
    except RepositoryUnknown:
        return _error(404, "Repository not found")
    return RepositoryConfigOut(**config_store.config_to_dict(config))


@router.get("/health")
def health_check():
    return {"status": "ok"}
