from typing import Optional


class StorefrontError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None):
        self.message = message or self.default_message
        self.error = error
        super().__init__(self.message)

    def to_content(self) -> dict:
        content = {"message": self.message}
        if self.error is not None:
            content["error"] = self.error
        return content


class ValidationError(StorefrontError):
    status_code = 400
    default_message = "Missing required fields"


class AuthenticationError(StorefrontError):
    status_code = 401
    default_message = "Authentication required"


class NotFoundError(StorefrontError):
    status_code = 404
    default_message = "Not found"


class DataAccessError(StorefrontError):
    """Raised by the store for any failed statement.

    ``error`` holds the database driver's message and is passed through to
    the client unchanged.
    """
    status_code = 500
    default_message = "Database error"


class ConflictError(DataAccessError):
    """A statement violated a key or NOT NULL constraint."""


class InternalError(StorefrontError):
    status_code = 500
    default_message = "Internal server error"


def require_fields(payload, *names: str, message: Optional[str] = None) -> None:
    # zero counts as missing, an empty list does not
    if any(getattr(payload, name, None) in (None, "", 0) for name in names):
        raise ValidationError(message)
