"""
Domain errors shared by the service layers.
"""

from __future__ import annotations


class FoodDiaryError(Exception):
    """Base class for errors raised by the food diary service."""


class ValidationError(FoodDiaryError):
    """Input rejected before any network call was made."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class ImageUploadError(FoodDiaryError):
    """Uploading an image to object storage failed; the save is aborted."""


class StorageError(FoodDiaryError):
    """An object-storage call failed."""


class RecordNotFoundError(FoodDiaryError):
    """The requested record does not exist (or is not visible to the caller)."""


class AuthError(FoodDiaryError):
    """Error reported by the auth collaborator, tagged with a provider code."""

    EMAIL_ALREADY_IN_USE = "auth/email-already-in-use"
    INVALID_EMAIL = "auth/invalid-email"
    WEAK_PASSWORD = "auth/weak-password"
    INVALID_CREDENTIAL = "auth/invalid-credential"
    USER_NOT_FOUND = "auth/user-not-found"
    REQUIRES_LOGIN = "auth/requires-recent-login"

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class DuplicateRecordError(FoodDiaryError):
    """A record with the same unique key already exists."""
