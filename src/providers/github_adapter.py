from typing import Iterator

from .base import GitProviderAdapter
from engine.errors import ProviderUnavailable, RepositoryNotFound


class GitHubAdapter(GitProviderAdapter):
    name = "github"

    def _headers(self) -> dict:
        headers = super()._headers()
        headers["Accept"] = "application/vnd.github+json"
        return headers

    @staticmethod
    def _split_slug(slug: str):
        owner, _, repo = slug.partition("/")
        if not owner or not repo:
            raise RepositoryNotFound(f"Invalid GitHub repository slug: {slug}")
        return owner, repo

    def get_default_branch(self, slug: str) -> str:
        owner, repo = self._split_slug(slug)
        with self._translate_errors(slug):
            response = self.client.get(f"{self.api_url}/repos/{owner}/{repo}", headers=self._headers())
        self._raise_for_status(response, slug)
        return response.json().get("default_branch") or "main"

    def resolve_archive_url(self, slug: str, ref: str) -> str:
        """The zipball endpoint answers with a redirect to a short-lived download URL."""
        owner, repo = self._split_slug(slug)
        url = f"{self.api_url}/repos/{owner}/{repo}/zipball/{ref}"
        with self._translate_errors(slug):
            response = self.client.get(url, headers=self._headers(), follow_redirects=False)
        if response.is_redirect:
            location = response.headers.get("location")
            if not location:
                raise ProviderUnavailable(f"github redirect for {slug} carried no location")
            return location
        self._raise_for_status(response, slug)
        return url

    def get_archive_stream(self, slug: str, ref: str) -> Iterator[bytes]:
        archive_url = self.resolve_archive_url(slug, ref)
        with self._translate_errors(slug):
            with self.client.stream("GET", archive_url, headers=self._headers(), follow_redirects=True) as response:
                self._raise_for_status(response, slug)
                yield from response.iter_bytes()
