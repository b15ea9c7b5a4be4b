from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional

import httpx

from engine.errors import ProviderUnavailable, RepositoryNotFound


class GitProviderAdapter(ABC):
    """Normalised view of a git hosting provider: default branch + archive stream."""

    name = "provider"

    def __init__(self, api_url: str, token: Optional[str] = None, timeout: float = 30.0,
                 client: Optional[httpx.Client] = None):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self.client = client or httpx.Client(timeout=timeout)

    @abstractmethod
    def get_default_branch(self, slug: str) -> str:
        pass

    @abstractmethod
    def get_archive_stream(self, slug: str, ref: str) -> Iterator[bytes]:
        pass

    def close(self):
        self.client.close()

    def _headers(self) -> dict:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @contextmanager
    def _translate_errors(self, slug: str):
        try:
            yield
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"{self.name} request for {slug} failed: {e}") from e

    def _raise_for_status(self, response: httpx.Response, slug: str):
        if response.status_code == 404:
            raise RepositoryNotFound(f"{self.name} repository {slug} not found")
        if response.status_code >= 400:
            raise ProviderUnavailable(
                f"{self.name} returned HTTP {response.status_code} for {slug}"
            )
