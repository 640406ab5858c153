# orderflow/domain/errors.py
from dataclasses import dataclass, asdict
from typing import Any, Iterable


@dataclass(frozen=True)
class Violation:
    """Single problem found while validating a request or a cart line."""

    code: str
    message: str
    field: str | None = None
    product_id: str | None = None
    product_name: str | None = None
    available: int | None = None
    requested: int | None = None
    line_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class DomainError(Exception):
    """
    Bazowy blad domeny.
    kind - stabilny kod dla klienta, status_code - mapowanie na HTTP
    """

    kind = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        violations: Iterable[Violation] = (),
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.violations = list(violations)
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        details = dict(self.details)
        if self.violations:
            details["errors"] = [v.to_dict() for v in self.violations]
        return {
            "code": self.kind,
            "message": self.message,
            "details": details,
        }


class ValidationError(DomainError):
    kind = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(DomainError):
    kind = "NOT_FOUND"
    status_code = 404


class ConflictError(DomainError):
    kind = "CONFLICT"
    status_code = 409


class ForbiddenError(DomainError):
    kind = "FORBIDDEN"
    status_code = 403


class InvalidTransitionError(ValidationError):
    kind = "INVALID_TRANSITION"

    def __init__(self, current: str, requested: str, allowed: Iterable[str]):
        self.current = current
        self.requested = requested
        self.allowed = sorted(allowed)
        allowed_text = ", ".join(self.allowed) if self.allowed else "none (terminal state)"
        super().__init__(
            f'Invalid status transition from "{current}" to "{requested}". '
            f"Allowed transitions: {allowed_text}",
            details={"current": current, "requested": requested, "allowed": self.allowed},
        )


class UnauthorizedError(DomainError):
    kind = "UNAUTHORIZED"
    status_code = 401
