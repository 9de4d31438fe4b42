"""Configuration management for coderag."""

from __future__ import annotations

import copy
import hashlib
import json
import os
from pathlib import Path
from typing import Dict, List, Optional


DEFAULT_INCLUDE_PATTERNS: List[str] = ["*.cs"]

DEFAULT_EXCLUDE_PATTERNS: List[str] = [
    ".git/**",
    "bin/**",
    "obj/**",
    "node_modules/**",
    "packages/**",
    ".vs/**",
    ".idea/**",
    ".vscode/**",
    ".coderag/**",
]

DEFAULT_CONFIG: Dict = {
    "indexing": {
        "data_dir": ".coderag",
        "max_unit_chars": 4000,
        "max_file_size_kb": 512,
        "include_patterns": DEFAULT_INCLUDE_PATTERNS,
        "exclude_patterns": DEFAULT_EXCLUDE_PATTERNS,
    },
    "embedding": {
        # "ollama" or "sentence_transformers"
        "backend": "ollama",
        "model": "nomic-embed-text",
        "dimensions": 768,
        "batch_size": 32,
        "base_url": "http://localhost:11434",
        "timeout": 120,
    },
    "llm": {
        # "ollama" or "openai" (any chat-completions compatible endpoint)
        "backend": "ollama",
        "model": "llama3.1",
        "base_url": "http://localhost:11434",
        "api_key_env": "OPENAI_API_KEY",
        "timeout": 300,
        "max_tokens": 1024,
        "temperature": 0.1,
    },
    "search": {"top_k": 10, "rrf_k": 60},
    "vector_store": {
        "backend": "qdrant",
        "qdrant": {
            "host": "localhost",
            "port": 6333,
            "url": None,
            "collection": "coderag_units",
        },
    },
}


def expand_pattern(pattern: str) -> List[str]:
    """Expand pattern to include both root and nested versions.

    Examples:
        '*.cs' -> ['*.cs', '**/*.cs']
        'obj/**' -> ['obj/**', '**/obj/**']
    """
    pattern = pattern.strip()
    if not pattern or pattern.startswith("#"):
        return []

    if pattern.startswith("**/"):
        return [pattern]

    if pattern.startswith("*."):
        return [pattern, "**/" + pattern]

    if "/**" in pattern:
        return [pattern, "**/" + pattern]

    return [pattern]


def _expand_patterns(patterns: List[str]) -> List[str]:
    """Expand and deduplicate patterns while preserving order."""
    out: List[str] = []
    seen: set[str] = set()
    for p in patterns:
        for ep in expand_pattern(p):
            if ep not in seen:
                seen.add(ep)
                out.append(ep)
    return out


def _apply_env_overrides(config: Dict) -> None:
    qdrant = config["vector_store"]["qdrant"]
    qdrant["host"] = os.getenv("QDRANT_HOST", qdrant["host"])
    qdrant["port"] = int(os.getenv("QDRANT_PORT", str(qdrant["port"])))
    qdrant["url"] = os.getenv("QDRANT_URL", qdrant["url"])

    indexing = config["indexing"]
    indexing["data_dir"] = os.getenv("CODERAG_DATA_DIR", indexing["data_dir"])

    ollama_url = os.getenv("OLLAMA_BASE_URL")
    if ollama_url:
        config["embedding"]["base_url"] = ollama_url
        if config["llm"]["backend"] == "ollama":
            config["llm"]["base_url"] = ollama_url

    config["embedding"]["model"] = os.getenv("CODERAG_EMBEDDING_MODEL", config["embedding"]["model"])
    config["llm"]["model"] = os.getenv("CODERAG_LLM_MODEL", config["llm"]["model"])


def load_config(repo: Optional[Path] = None, overrides: Optional[Dict] = None) -> Dict:
    """Load configuration.

    Returns the default configuration with environment overrides applied,
    any explicit ``overrides`` merged on top, and glob patterns expanded.
    A relative ``indexing.data_dir`` is resolved against ``repo`` when given.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    _apply_env_overrides(config)

    if overrides:
        _deep_merge(config, overrides)

    indexing = config["indexing"]
    data_dir = Path(indexing["data_dir"])
    if repo is not None and not data_dir.is_absolute():
        data_dir = Path(repo) / data_dir
    indexing["data_dir"] = str(data_dir)

    config["include_globs"] = _expand_patterns(indexing["include_patterns"])
    config["exclude_globs"] = _expand_patterns(indexing["exclude_patterns"])

    return config


def _deep_merge(base: Dict, extra: Dict) -> None:
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def cfg_fingerprint(cfg: Dict) -> str:
    """Generate fingerprint hash for config."""
    payload = json.dumps(cfg, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()
