"""Configuration module for coderag."""

from .manager import DEFAULT_CONFIG, cfg_fingerprint, expand_pattern, load_config

__all__ = ["DEFAULT_CONFIG", "cfg_fingerprint", "expand_pattern", "load_config"]
