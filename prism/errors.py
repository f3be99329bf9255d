# prism/errors.py
# Created: 2026-10-16
# Purpose: Error taxonomy for the question merge pipeline

"""
Pipeline errors.

Per-pair failures (ServiceError, ValidationError) are absorbed inside the
merge pipeline. Only precondition violations, data loading failures and a
completely empty run reach the caller.
"""

from prism.llm_layer import ServiceError


class PrismError(Exception):
    """Base exception for pipeline errors."""
    pass


class InsufficientFrameworks(PrismError):
    """Fewer than two distinct frameworks were selected."""
    pass


class DataLoadError(PrismError):
    """Framework document could not be read or parsed."""
    pass


class ValidationError(PrismError):
    """Generated text failed a quality gate."""
    pass


class NoQuestionsGenerated(PrismError):
    """The run produced no merged question at all."""
    pass


__all__ = [
    "PrismError",
    "InsufficientFrameworks",
    "DataLoadError",
    "ValidationError",
    "NoQuestionsGenerated",
    "ServiceError",
]
