# src/engine/config_store.py
"""
Persistence gateway for repositories, their scan-derived configuration and scan jobs.
All functions take an open SQLAlchemy session and commit their own writes.
"""

from engine.errors import RepositoryUnknown
from engine.models import Repository, RepositoryConfig, ScanJob, utcnow

CONFIG_FIELDS = (
    "test_frameworks",
    "test_folder_patterns",
    "test_file_naming_convention",
    "coverage_folder_path",
    "user_test_folder_preference",
    "test_type_handling",
    "feature_domain_based_test",
    "external_test_repo",
)


def find_repository_by_id(db, repository_id):
    return db.query(Repository).filter(Repository.id == repository_id).first()


def upsert_repository(db, data: dict) -> Repository:
    repository = find_repository_by_id(db, data["id"])
    if repository is None:
        repository = Repository(id=data["id"])
        db.add(repository)
    for key, value in data.items():
        if key != "id":
            setattr(repository, key, value)
    db.commit()
    db.refresh(repository)
    return repository


def find_config_by_repository_id(db, repository_id):
    return db.query(RepositoryConfig).filter(RepositoryConfig.repository_id == repository_id).first()


def get_user_test_folder_preference(db, repository_id):
    config = find_config_by_repository_id(db, repository_id)
    return config.user_test_folder_preference if config else None


def upsert_config(db, config: dict) -> RepositoryConfig:
    """Insert or wholesale-replace the configuration row for config['repository_id']."""
    record = find_config_by_repository_id(db, config["repository_id"])
    if record is None:
        record = RepositoryConfig(repository_id=config["repository_id"], created_at=utcnow())
        db.add(record)
    for key in CONFIG_FIELDS:
        setattr(record, key, config.get(key))
    record.updated_at = utcnow()
    db.commit()
    db.refresh(record)
    return record


def set_user_test_folder_preference(db, repository_id, preference) -> RepositoryConfig:
    if find_repository_by_id(db, repository_id) is None:
        raise RepositoryUnknown(f"Repository with ID {repository_id} not found.")
    record = find_config_by_repository_id(db, repository_id)
    if record is None:
        record = RepositoryConfig(
            repository_id=repository_id,
            test_frameworks=[],
            test_folder_patterns={},
            test_file_naming_convention={},
            created_at=utcnow(),
        )
        db.add(record)
    record.user_test_folder_preference = preference
    record.updated_at = utcnow()
    db.commit()
    db.refresh(record)
    return record


def config_to_dict(config: RepositoryConfig) -> dict:
    data = {"repository_id": config.repository_id}
    for key in CONFIG_FIELDS:
        data[key] = getattr(config, key)
    data["created_at"] = str(config.created_at) if config.created_at else None
    data["updated_at"] = str(config.updated_at) if config.updated_at else None
    return data


def find_active_job(db, repository_id):
    return (
        db.query(ScanJob)
        .filter(ScanJob.repository_id == repository_id, ScanJob.status.in_(("queued", "running")))
        .order_by(ScanJob.created_at.asc())
        .first()
    )


def find_job(db, job_id):
    return db.query(ScanJob).filter(ScanJob.job_id == job_id).first()


def find_jobs(db, repository_id=None, status=None, limit=20, offset=0):
    query = db.query(ScanJob)
    if repository_id:
        query = query.filter(ScanJob.repository_id == repository_id)
    if status:
        query = query.filter(ScanJob.status == status)
    return query.order_by(ScanJob.created_at.desc()).offset(offset).limit(limit).all()


def job_to_dict(job: ScanJob) -> dict:
    return {
        "job_id": job.job_id,
        "repository_id": job.repository_id,
        "provider": job.provider,
        "slug": job.slug,
        "status": job.status,
        "error": job.error,
        "created_at": str(job.created_at),
        "started_at": str(job.started_at) if job.started_at else None,
        "finished_at": str(job.finished_at) if job.finished_at else None,
    }
