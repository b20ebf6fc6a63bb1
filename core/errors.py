"""
core/errors.py
────────────────────────────────────────────────────────────────────────
Error types raised by the planning engine.

Only invalid input stops processing early; collaborator failures are
logged and degraded locally by each component.
"""

from __future__ import annotations


class PlanValidationError(ValueError):
    """Rejected input: bad plan options, bounds, plan shape or arguments."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def __str__(self) -> str:
        msg = super().__str__()
        return f"{self.field}: {msg}" if self.field else msg
