"""Indexer Interface."""

from __future__ import annotations

from pathlib import Path
from typing import Union


class Indexer:
    """Abstract base class for code indexing."""

    def index(self, project_path: Union[str, Path], force_full: bool = False, **kwargs):
        raise NotImplementedError
