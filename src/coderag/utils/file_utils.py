"""File utility functions."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path, PurePosixPath


def is_binary_file(path: Path) -> bool:
    """Check if file is binary by looking for null bytes."""
    try:
        with path.open("rb") as f:
            sample = f.read(2048)
        return b"\x00" in sample
    except OSError:
        return True


def file_sha256(path: Path) -> str:
    """Calculate SHA256 hash of file."""
    h = hashlib.sha256()
    with path.open("rb") as f:
        for block in iter(lambda: f.read(1024 * 1024), b""):
            h.update(block)
    return h.hexdigest()


def normalize_rel_path(path: str) -> str:
    """Relative path with forward slashes and no leading './'."""
    posix = str(PurePosixPath(path.replace("\\", "/")))
    return "" if posix == "." else posix


def source_root(project_path: Path) -> Path:
    """Directory holding the sources: the path itself, or a file's parent."""
    resolved = project_path.resolve()
    return resolved if resolved.is_dir() else resolved.parent


def project_id_for(project_path: Path) -> str:
    """Stable, readable id for a project: directory name plus a path hash."""
    resolved = project_path.resolve()
    name = resolved.stem if resolved.is_file() else resolved.name
    slug = re.sub(r"[^A-Za-z0-9_.-]+", "-", name).strip("-").lower() or "project"
    digest = hashlib.sha256(str(resolved).encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}"


def unit_id_for(project_id: str, file_path: str, start_line: int) -> str:
    """Deterministic unit id (32 hex chars)."""
    raw = f"{project_id}:{file_path}:{start_line}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]
