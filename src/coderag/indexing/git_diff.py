"""Git-driven change detection between indexed revisions."""

from __future__ import annotations

import dataclasses
import logging
import subprocess
from pathlib import Path, PurePosixPath
from typing import List, Optional, Set

from ..core.errors import NotUnderVersionControlError
from ..utils.file_utils import normalize_rel_path

logger = logging.getLogger(__name__)

DEFAULT_PATHSPEC = "*.cs"


@dataclasses.dataclass
class ChangeSet:
    """Files changed between two revisions, relative to the project root."""

    added: Set[str] = dataclasses.field(default_factory=set)
    modified: Set[str] = dataclasses.field(default_factory=set)
    deleted: Set[str] = dataclasses.field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.deleted)

    @property
    def to_reindex(self) -> Set[str]:
        return self.added | self.modified

    @property
    def to_remove(self) -> Set[str]:
        return self.modified | self.deleted


class GitChangeDetector:
    """Thin wrapper over the ``git`` binary.

    Every failure (git missing, not a work tree, unknown revision) surfaces as
    ``NotUnderVersionControlError`` so callers can fall back to a full index.
    """

    def __init__(self, pathspec: str = DEFAULT_PATHSPEC, timeout: int = 60):
        self.pathspec = pathspec
        self.timeout = timeout

    def _run_git(self, path: Path, args: List[str]) -> str:
        cmd = ["git", "-C", str(path), "-c", "core.quotepath=off", *args]
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                check=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise NotUnderVersionControlError("git executable not found") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise NotUnderVersionControlError(
                f"git {' '.join(args)} failed (exit {e.returncode}): {stderr}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise NotUnderVersionControlError(f"git {' '.join(args)} timed out after {self.timeout}s") from e
        return result.stdout

    def _project_prefix(self, path: Path) -> str:
        """Project directory relative to the repository top level ('' at the root)."""
        top = Path(self._run_git(path, ["rev-parse", "--show-toplevel"]).strip()).resolve()
        try:
            rel = path.resolve().relative_to(top)
        except ValueError as e:
            raise NotUnderVersionControlError(f"{path} is outside work tree {top}") from e
        return normalize_rel_path(rel.as_posix())

    def current_revision(self, path: Path) -> str:
        return self._run_git(path, ["rev-parse", "HEAD"]).strip()

    def changed_files(self, path: Path, from_rev: str, to_rev: str) -> ChangeSet:
        if not from_rev or not from_rev.strip():
            raise ValueError("from_rev must not be blank")
        if not to_rev or not to_rev.strip():
            raise ValueError("to_rev must not be blank")

        prefix = self._project_prefix(path)
        output = self._run_git(
            path,
            ["diff", "--name-status", "-M", "-z", from_rev.strip(), to_rev.strip(), "--", self.pathspec],
        )
        changes = ChangeSet()

        def rebase(repo_path: str) -> Optional[str]:
            rel = normalize_rel_path(repo_path)
            if not prefix:
                return rel
            pure = PurePosixPath(rel)
            if not pure.is_relative_to(prefix):
                return None
            return pure.relative_to(prefix).as_posix()

        def add_to(target: Set[str], repo_path: str) -> None:
            rel = rebase(repo_path)
            if rel:
                target.add(rel)

        tokens = output.split("\0")
        i = 0
        while i < len(tokens):
            status = tokens[i].strip()
            i += 1
            if not status:
                continue
            kind = status[0]
            if kind in ("R", "C"):
                if i + 1 >= len(tokens):
                    break
                old, new = tokens[i], tokens[i + 1]
                i += 2
                if kind == "R":
                    add_to(changes.deleted, old)
                add_to(changes.added, new)
                continue

            if i >= len(tokens):
                break
            file_path = tokens[i]
            i += 1
            if kind == "A":
                add_to(changes.added, file_path)
            elif kind in ("M", "T"):
                add_to(changes.modified, file_path)
            elif kind == "D":
                add_to(changes.deleted, file_path)
            else:
                logger.debug(f"Ignoring diff status {status} for {file_path}")

        logger.info(
            f"Changes {from_rev[:8]}..{to_rev[:8]}: {len(changes.added)} added, "
            f"{len(changes.modified)} modified, {len(changes.deleted)} deleted"
        )
        return changes

    def has_uncommitted_changes(self, path: Path) -> bool:
        output = self._run_git(path, ["status", "--porcelain", "--", self.pathspec])
        return bool(output.strip())
