# src/workflow/__init__.py — v1
"""Workflow definitions, loading, execution and output persistence."""
