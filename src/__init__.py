# src/__init__.py — v1
"""docflow — step orchestrator and job pool for document analysis operations."""

from docflow.version import __version__

__all__ = ["__version__"]
