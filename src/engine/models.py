from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


class Repository(Base):
    __tablename__ = 'repositories'
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    full_path = Column(String, nullable=False)
    provider = Column(String, nullable=False)
    last_synced = Column(DateTime, nullable=True)
    monitored_branches = Column(JSON, default=list)
    open_pull_requests = Column(Integer, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class RepositoryConfig(Base):
    __tablename__ = 'repository_configs'
    id = Column(Integer, primary_key=True, autoincrement=True)
    repository_id = Column(String, ForeignKey('repositories.id'), unique=True, nullable=False)
    test_frameworks = Column(JSON, nullable=False, default=list)
    test_folder_patterns = Column(JSON, nullable=False, default=dict)
    test_file_naming_convention = Column(JSON, nullable=False, default=dict)
    coverage_folder_path = Column(String, nullable=True)
    user_test_folder_preference = Column(JSON, nullable=True)  # user override, never detected
    test_type_handling = Column(JSON, nullable=True)
    feature_domain_based_test = Column(Boolean, default=False)
    external_test_repo = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ScanJob(Base):
    __tablename__ = 'scan_jobs'
    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String, unique=True, nullable=False)
    repository_id = Column(String, ForeignKey('repositories.id'), nullable=False, index=True)
    provider = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    status = Column(String, default='queued', index=True)  # queued | running | done | failed
    worker = Column(String, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    started_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)
