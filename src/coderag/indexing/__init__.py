"""Indexing module for coderag."""

from .base import Indexer
from .extractor import CSharpExtractor, Extractor, make_extractor
from .git_diff import ChangeSet, GitChangeDetector
from .pipeline import IndexingPipeline, IndexReport, build_indexing_pipeline

__all__ = [
    "Indexer",
    "CSharpExtractor",
    "Extractor",
    "make_extractor",
    "ChangeSet",
    "GitChangeDetector",
    "IndexingPipeline",
    "IndexReport",
    "build_indexing_pipeline",
]
