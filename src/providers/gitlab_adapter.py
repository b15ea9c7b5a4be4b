from typing import Iterator
from urllib.parse import quote

from .base import GitProviderAdapter


class GitLabAdapter(GitProviderAdapter):
    name = "gitlab"

    def _project_url(self, slug: str) -> str:
        return f"{self.api_url}/projects/{quote(slug, safe='')}"

    def get_default_branch(self, slug: str) -> str:
        with self._translate_errors(slug):
            response = self.client.get(self._project_url(slug), headers=self._headers())
        self._raise_for_status(response, slug)
        return response.json().get("default_branch") or "main"

    def get_archive_stream(self, slug: str, ref: str) -> Iterator[bytes]:
        # GitLab streams the archive body directly, no redirect step
        url = f"{self._project_url(slug)}/repository/archive.zip"
        with self._translate_errors(slug):
            with self.client.stream("GET", url, params={"sha": ref}, headers=self._headers(),
                                    follow_redirects=True) as response:
                self._raise_for_status(response, slug)
                yield from response.iter_bytes()
