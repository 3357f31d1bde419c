# src/core/__init__.py — v1
"""Shared errors and result models."""
