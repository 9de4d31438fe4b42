"""Utility modules for coderag."""
