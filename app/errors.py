"""Application error types."""

from typing import Any


class AppError(Exception):
    """Operational error: expected, user-facing, safe to show to the client."""

    is_operational = True

    def __init__(self, message: str, status_code: int, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = "fail" if str(status_code).startswith("4") else "error"
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error as a response envelope."""
        body: dict[str, Any] = {"status": self.status, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


def not_found(resource: str) -> AppError:
    """Standard 404 for a missing document."""
    return AppError(f"No {resource} found with that ID", 404)
