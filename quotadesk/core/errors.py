from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class QuotaDeskError(Exception):
    code: str
    message: str
    status_code: int = 400

    def __str__(self) -> str:
        return self.message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


@dataclass
class ValidationError(QuotaDeskError):
    """Malformed submission. The whole submission is rejected."""

    code: str = "VALIDATION_FAILED"
    message: str = "Shipment submission is invalid."
    status_code: int = 422
    errors: list[str] = field(default_factory=list)

    def to_detail(self) -> dict:
        detail = super().to_detail()
        if self.errors:
            detail["errors"] = list(self.errors)
        return detail


@dataclass
class NotFoundError(QuotaDeskError):
    code: str = "NOT_FOUND"
    message: str = "Resource was not found."
    status_code: int = 404


@dataclass
class InvalidTransitionError(QuotaDeskError):
    code: str = "INVALID_TRANSITION"
    message: str = "Transition is not allowed from the current state."
    status_code: int = 409
    current_status: str | None = None

    def to_detail(self) -> dict:
        detail = super().to_detail()
        if self.current_status:
            detail["current_status"] = self.current_status
        return detail


@dataclass
class NotificationError(QuotaDeskError):
    # Advisory only: logged by the outbox, never raised out of a transition.
    code: str = "NOTIFICATION_FAILED"
    message: str = "Notification could not be delivered."
    status_code: int = 502
    channel: str | None = None
