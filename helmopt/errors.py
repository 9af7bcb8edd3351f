"""Error taxonomy for helm-optimize.

Every failure the resolution pipeline can recover from has its own type so
callers decide with ``except`` clauses instead of string matching.
"""

from __future__ import annotations


class OptimizeError(Exception):
    """Base class for all helm-optimize errors."""


class ConfigurationError(OptimizeError):
    """Credentials or tooling are missing, invalid or unreachable."""


class InsightNotFoundError(OptimizeError, LookupError):
    """No analysis, insight or approval label exists for a key."""


class SpecValidationError(OptimizeError, ValueError):
    """A recommendation has missing or non-positive resource values."""


class TransportError(OptimizeError):
    """An HTTP request or subprocess invocation failed."""


class StructuralError(OptimizeError):
    """A manifest cannot be processed (bad YAML, unsupported kind, ...)."""
