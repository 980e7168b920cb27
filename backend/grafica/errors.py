import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class GraficaError(Exception):
    """Base class for errors surfaced to API callers."""


class DataAccessError(GraficaError):
    """A database read or write failed.

    `message` is the human-readable text built from the backend payload
    (message, details and hint joined together when available).
    """

    def __init__(self, message: str, where: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.where = where
        self.code = code


class NotFoundError(DataAccessError):
    pass


class AuthError(GraficaError):
    code = "auth_error"
    default_message = "Authentication failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotAuthenticatedError(AuthError):
    code = "not_authenticated"
    default_message = "Not authenticated"


class DuplicateIdentityError(AuthError):
    code = "duplicate_identity"
    default_message = "User already registered"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} already registered")
        self.code = f"duplicate_{field}"


class InvalidCredentialsError(AuthError):
    code = "invalid_credentials"
    default_message = "Invalid password"


class UserNotFoundError(AuthError):
    code = "user_not_found"
    default_message = "User not found"


class ValidationFailed(GraficaError):
    def __init__(self, issues):
        self.issues = list(issues)
        super().__init__("validation failed: " + ", ".join(self.issues))


class BackupFormatError(GraficaError):
    pass


def _join(*parts: Any) -> str:
    return " — ".join(str(p) for p in parts if p)


def backend_message(err: Any) -> str:
    """Build a readable message out of whatever the backend raised."""
    if err is None:
        return "Unknown error"
    if isinstance(err, str):
        return err
    if isinstance(err, dict):
        if err.get("message"):
            return _join(err.get("message"), err.get("details"), err.get("hint"))
        nested = err.get("error")
        if isinstance(nested, dict) and nested.get("message"):
            return _join(nested.get("message"), nested.get("details"), nested.get("hint"))
        try:
            txt = json.dumps(err, default=str)
        except (TypeError, ValueError):
            return str(err)
        return str(err) if txt == "{}" else txt
    if isinstance(err, DataAccessError):
        return err.message
    # SQLAlchemy DBAPIError keeps the driver error on .orig
    orig = getattr(err, "orig", None)
    message = str(orig) if orig is not None else str(err)
    details = getattr(err, "details", None)
    hint = getattr(err, "hint", None)
    return _join(message, details, hint) or err.__class__.__name__


def log_backend_error(where: str, err: Any) -> str:
    msg = backend_message(err)
    code = getattr(err, "code", None) or (err.get("code") if isinstance(err, dict) else None)
    if code:
        logger.error("[%s] %s (code=%s)", where, msg, code)
    else:
        logger.error("[%s] %s", where, msg)
    return msg
