# src/engine/errors.py
"""Exceptions raised while queueing and running repository scans."""

from __future__ import annotations


class ScanError(Exception):
    code = "scan_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ProviderUnavailable(ScanError):
    """Network, auth or server-side failure talking to a git provider. Retryable."""

    code = "provider_unavailable"


class RepositoryNotFound(ScanError):
    """The provider does not know the repository (or hides it from us)."""

    code = "repository_not_found"


class RepositoryUnknown(ScanError):
    """The repository id is not present in the local repository store."""

    code = "repository_unknown"


class UnsupportedProvider(ScanError):
    code = "unsupported_provider"


class ArchiveCorrupt(ScanError):
    """The downloaded archive could not be extracted."""

    code = "archive_corrupt"


class ManifestParseError(ScanError):
    """A manifest could not be read. Only ever raised inside a detection probe."""

    code = "manifest_parse_error"


class CircuitOpenError(ScanError):
    code = "circuit_open"
