import logging
import os
import re
import shutil
import tempfile
import time
import zipfile
from contextlib import contextmanager

from engine.errors import ArchiveCorrupt

WORKDIR_PREFIX = "repo-"
# repo-<safe id>-<time_ns>-<mkdtemp suffix>
WORKDIR_PATTERN = re.compile(rf"^{re.escape(WORKDIR_PREFIX)}[A-Za-z0-9_.-]+-\d{{16,}}-[A-Za-z0-9_]{{8}}$")


def _safe_name(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", value).strip("._") or "repo"


def create_working_directory(scratch_root: str, repository_id: str) -> str:
    """
    Create a job-private scratch directory named after the repository id and a
    nanosecond timestamp. mkdtemp adds a random suffix so concurrent jobs never collide.
    """
    os.makedirs(scratch_root, exist_ok=True)
    prefix = f"{WORKDIR_PREFIX}{_safe_name(repository_id)}-{time.time_ns()}-"
    return tempfile.mkdtemp(prefix=prefix, dir=scratch_root)


@contextmanager
def working_directory(scratch_root: str, repository_id: str):
    path = create_working_directory(scratch_root, repository_id)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        logging.info(f"[repository_id={repository_id}] Removed working directory {path}")


def write_stream(chunks, destination: str) -> int:
    """Write an iterable of byte chunks to destination, returning the byte count."""
    written = 0
    with open(destination, "wb") as f:
        for chunk in chunks:
            if chunk:
                f.write(chunk)
                written += len(chunk)
    return written


def _is_unsafe_member(name: str) -> bool:
    normalized = name.replace("\\", "/")
    if normalized.startswith("/") or re.match(r"^[A-Za-z]:", normalized):
        return True
    return ".." in normalized.split("/")


def extract_zip(archive_path: str, destination: str) -> str:
    """
    Extract a ZIP archive into destination. Raises ArchiveCorrupt for invalid
    archives and for members that would land outside destination.
    """
    os.makedirs(destination, exist_ok=True)
    try:
        with zipfile.ZipFile(archive_path) as archive:
            bad_member = archive.testzip()
            if bad_member is not None:
                raise ArchiveCorrupt(f"Archive member {bad_member} failed CRC check")
            for member in archive.infolist():
                if _is_unsafe_member(member.filename):
                    raise ArchiveCorrupt(f"Refusing to extract unsafe archive member {member.filename}")
            archive.extractall(destination)
    # OSError: colliding members (a file and a directory under one name);
    # RuntimeError: encrypted members; NotImplementedError: unknown compression
    except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError, OSError, RuntimeError, NotImplementedError) as e:
        raise ArchiveCorrupt(f"Could not extract archive: {e}") from e
    return destination


def unwrap_single_root(tree_root: str) -> str:
    """Provider archives nest everything under one `owner-repo-sha/` folder."""
    entries = [e for e in os.listdir(tree_root) if e != "__MACOSX"]
    if len(entries) == 1 and os.path.isdir(os.path.join(tree_root, entries[0])):
        return os.path.join(tree_root, entries[0])
    return tree_root


def purge_stale_working_directories(scratch_root: str, max_age_seconds: float, now=None) -> list:
    """
    Remove arenas abandoned by jobs that never reached their cleanup step.
    Only directories named the way create_working_directory names them are touched.
    """
    if not os.path.isdir(scratch_root):
        return []
    now = now if now is not None else time.time()
    removed = []
    for entry in os.listdir(scratch_root):
        path = os.path.join(scratch_root, entry)
        if not WORKDIR_PATTERN.match(entry) or not os.path.isdir(path):
            continue
        if now - os.path.getmtime(path) >= max_age_seconds:
            shutil.rmtree(path, ignore_errors=True)
            removed.append(path)
    if removed:
        logging.info(f"Purged {len(removed)} stale working directories under {scratch_root}")
    return removed
