"""Diff review pipeline: static analysis plus two-tier LLM review."""

__version__ = "2.0.0"
