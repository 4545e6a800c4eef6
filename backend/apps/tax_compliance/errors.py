"""Exception hierarchy of the tax compliance core.

Only precondition violations raise; classifier, preflight and XML validator
findings are returned as itemized error/warning lists.
"""

from __future__ import annotations

from typing import Sequence


class TaxComplianceError(RuntimeError):
    """Base error carrying a stable machine-readable ``code``."""

    kind = "error"

    def __init__(self, code: str, detail: str | None = None) -> None:
        super().__init__(code)
        self.code = code
        self.detail = detail

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"error": self.code}
        if self.detail:
            payload["detail"] = self.detail
        return payload


class NotFoundError(TaxComplianceError):
    kind = "not_found"


class InvalidInputError(TaxComplianceError):
    kind = "invalid_input"


class StateConflictError(TaxComplianceError):
    kind = "state_conflict"


class ValidationFailedError(TaxComplianceError):
    """Raised when a report with blocking errors aborts an operation."""

    kind = "validation_failed"

    def __init__(
        self,
        code: str,
        errors: Sequence[str],
        warnings: Sequence[str] = (),
    ) -> None:
        super().__init__(code)
        self.errors = list(errors)
        self.warnings = list(warnings)

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["errors"] = self.errors
        payload["warnings"] = self.warnings
        return payload
