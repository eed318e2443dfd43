"""Request-level failures surfaced to callers; everything else degrades silently."""

from __future__ import annotations


class InputValidationError(ValueError):
    pass


class ConfigurationError(RuntimeError):
    pass


class RetrievalTimeoutError(RuntimeError):
    """Every image search was still pending when the request deadline expired."""
