"""coderag: hybrid dense + keyword retrieval over code units."""

__version__ = "0.1.0"
