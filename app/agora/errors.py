"""
Domain errors raised by the account guard, the store and the feature services.

Every error is recoverable at the request boundary: handlers catch
``AccessError``, flash ``message`` and redirect.
"""
from __future__ import annotations


class AccessError(Exception):
    message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        if message:
            self.message = message
        super().__init__(self.message)


class ValidationError(AccessError):
    message = "Please fill in all fields."

    def __init__(self, errors: list[str] | str | None = None) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = list(errors or [])
        super().__init__(self.errors[0] if self.errors else None)


class DuplicateEmail(AccessError):
    message = "Email already registered."


class NotFound(AccessError):
    message = "Email not registered."


class AccountLocked(AccessError):
    message = "Your account is locked due to too many failed login attempts."


class InvalidPassword(AccessError):
    message = "Incorrect password."


class Unauthenticated(AccessError):
    message = "Please log in to continue."


class Forbidden(AccessError):
    message = "You are not authorized to view that resource."


class StoreUnavailable(AccessError):
    message = "The service is temporarily unavailable. Please try again shortly."
