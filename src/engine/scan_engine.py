# src/engine/scan_engine.py
"""
ScanEngine: runs one repository scan end to end.

fetch archive -> detect frameworks -> infer conventions -> persist config,
inside a working directory that is removed on every exit path.
"""

import logging

from engine import config_store
from engine.archive_fetcher import ArchiveFetcher
from engine.conventions import infer_conventions
from engine.errors import RepositoryUnknown
from engine.framework_detector import detect_frameworks
from utils.archive_utils import working_directory


class ScanEngine:
    def __init__(self, session_factory, fetcher: ArchiveFetcher, scratch_root: str):
        self.session_factory = session_factory
        self.fetcher = fetcher
        self.scratch_root = scratch_root

    def build_config(self, repository_id: str, repo_path: str, user_test_folder_preference=None) -> dict:
        frameworks = detect_frameworks(repo_path)
        report = infer_conventions(frameworks, repo_path)
        return {
            "repository_id": repository_id,
            "test_frameworks": [fw.to_dict() for fw in frameworks],
            "test_folder_patterns": report.test_folder_patterns,
            "test_file_naming_convention": report.test_file_naming_convention,
            "coverage_folder_path": report.coverage_folder_path,
            "user_test_folder_preference": user_test_folder_preference,
            "test_type_handling": report.test_type_handling,
            "feature_domain_based_test": report.feature_domain_based_test,
            "external_test_repo": report.external_test_repo,
        }

    def scan_repository(self, repository_id: str, provider: str, slug: str = None) -> dict:
        db = self.session_factory()
        try:
            repository = config_store.find_repository_by_id(db, repository_id)
            if repository is None:
                raise RepositoryUnknown(f"Repository with ID {repository_id} not found.")
            slug = slug or repository.full_path
        finally:
            db.close()

        with working_directory(self.scratch_root, repository_id) as workdir:
            logging.info(f"[repository_id={repository_id}] Fetching {provider}:{slug} into {workdir}")
            repo_path = self.fetcher.fetch(provider, slug, workdir)

            db = self.session_factory()
            try:
                preference = config_store.get_user_test_folder_preference(db, repository_id)
                config = self.build_config(repository_id, repo_path, preference)
                # Single write, after every inference step has succeeded
                config_store.upsert_config(db, config)
            finally:
                db.close()

        logging.info(
            f"[repository_id={repository_id}] Scanned {slug}: "
            f"frameworks={[fw['type'] for fw in config['test_frameworks']]}"
        )
        return config
