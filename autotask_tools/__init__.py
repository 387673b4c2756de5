"""Autotask PSA entities as LLM tools, with cached ID-to-name resolution."""

__version__ = "0.1.0"
