"""Error taxonomy for the pipeline and dispatch engine."""

from __future__ import annotations


class CoastGuardError(Exception):
    """Base class for all CoastGuard errors."""


class NotFoundError(CoastGuardError, LookupError):
    """An identifier resolved to no record (or to more than one)."""


class PreconditionFailedError(CoastGuardError):
    """Required upstream fields are missing, e.g. site factors for stage 2."""


class CollaboratorError(CoastGuardError):
    """A vision, LLM or email collaborator failed. Always recoverable."""


class ValidationFailureError(CoastGuardError, ValueError):
    """A collaborator returned a malformed response."""


class InternalError(CoastGuardError):
    """Persistence or storage failure, including owned-field violations."""
