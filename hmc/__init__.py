"""Admission validators, label selectors and template-distribution logic over an in-memory object store."""

__version__ = "0.1.0"