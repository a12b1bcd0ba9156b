from __future__ import annotations


class AccessError(Exception):
    """Base access-control exception."""


class Unauthenticated(AccessError):
    """Raised when there is no valid session to resolve permissions for."""


class AuthorizationDenied(AccessError):
    """Raised when the backend refuses a call for lack of privilege."""


class ValidationError(AccessError):
    """Raised for malformed input, locally or as reported by the backend."""

    def __init__(self, message: str, field_errors: dict[str, list[str]] | None = None) -> None:
        super().__init__(message)
        self.field_errors = field_errors or {}

    def messages(self) -> list[str]:
        lines = [
            f"{field}: {message}"
            for field, messages in self.field_errors.items()
            for message in messages
        ]
        return lines or [str(self)]


class TransportError(AccessError):
    """Raised when the backend is unreachable or failing."""


class ContractError(AccessError):
    """Raised for configuration problems and unexpected payload shapes."""
