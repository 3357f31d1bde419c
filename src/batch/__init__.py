# src/batch/__init__.py — v1
"""Bounded-concurrency job pool and the batch_analyze operation."""
