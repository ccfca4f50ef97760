"""
guildhall.services.errors — Service-layer exceptions
=====================================================

Services return ``None`` when the thing asked for doesn't exist and raise
``ValueError`` for bad input.  The two subclasses below let routes pick
the right status code without parsing messages.
"""

from __future__ import annotations


class ConflictError(ValueError):
    """The request clashes with existing state (duplicate, already done)."""


class PreconditionError(ValueError):
    """A required earlier step hasn't happened (e.g. quest not started)."""
