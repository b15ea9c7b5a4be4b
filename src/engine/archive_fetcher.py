# src/engine/archive_fetcher.py
"""
ArchiveFetcher: downloads a repository's default branch as a ZIP archive and
extracts it into a job's working directory.
"""

import logging
import os

from engine.circuit_breaker import CircuitBreaker
from engine.errors import ProviderUnavailable, UnsupportedProvider
from utils.archive_utils import extract_zip, unwrap_single_root, write_stream

ARCHIVE_NAME = "archive.zip"
TREE_DIR = "tree"


class ArchiveFetcher:
    def __init__(self, providers: dict, breaker: CircuitBreaker = None):
        self.providers = providers
        self.breaker = breaker or CircuitBreaker(retry_on=(ProviderUnavailable,), name="providers")

    def supports(self, provider: str) -> bool:
        return provider in self.providers

    def _adapter(self, provider: str):
        adapter = self.providers.get(provider)
        if adapter is None:
            raise UnsupportedProvider(f"Unsupported provider: {provider}")
        return adapter

    def _download(self, adapter, slug: str, archive_path: str) -> int:
        ref = adapter.get_default_branch(slug)
        logging.info(f"Downloading {adapter.name} archive for {slug}@{ref}")
        return write_stream(adapter.get_archive_stream(slug, ref), archive_path)

    def fetch(self, provider: str, slug: str, working_dir: str) -> str:
        """Materialise the repository under working_dir and return the tree root."""
        adapter = self._adapter(provider)
        archive_path = os.path.join(working_dir, ARCHIVE_NAME)
        size = self.breaker.call(self._download, adapter, slug, archive_path)
        logging.info(f"Downloaded {size} bytes for {slug}, extracting")
        try:
            tree = extract_zip(archive_path, os.path.join(working_dir, TREE_DIR))
        finally:
            if os.path.exists(archive_path):
                os.remove(archive_path)
        return unwrap_single_root(tree)
