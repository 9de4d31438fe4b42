"""Exception types raised by the indexing and query pipelines."""

from __future__ import annotations


class CodeRagError(Exception):
    """Base class for coderag errors."""


class NotUnderVersionControlError(CodeRagError):
    """Path is not inside a git work tree, or git is unavailable.

    Indexing treats this as "fall back to a full index", never as fatal.
    """


class ProjectNotFoundError(CodeRagError, ValueError):
    """The project path given to the indexer does not exist."""


class EmbeddingError(CodeRagError, RuntimeError):
    """The embedding backend returned an unusable response."""


class DimensionMismatchError(CodeRagError, RuntimeError):
    """Vector dimensionality disagrees with the index it is written to."""


class IndexingCancelledError(CodeRagError):
    """Raised at a stage boundary when the caller requested cancellation."""
