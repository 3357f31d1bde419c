# src/render/__init__.py — v1
"""Text, CSV, HTML, Markdown and JSON renderings of summaries and reports."""

from docflow.render.renderer import render

__all__ = ["render"]
