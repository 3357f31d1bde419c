# src/operations/__init__.py — v1
"""Operation registry and built-in operations."""
