"""
Domain exceptions and the `server_action` wrapper.

Service functions raise; `server_action` turns the outcome into the
`{success, ...}` / `{success: False, error}` result blueprints return.
"""
import logging
from functools import wraps

from sqlalchemy.exc import SQLAlchemyError

from dairyflow.extensions import db

logger = logging.getLogger(__name__)

DATABASE_ERROR_MESSAGE = "Database error, please try again"


class DairyFlowError(Exception):
    error_type = "error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DairyFlowError):
    error_type = "validation"


class ConflictError(DairyFlowError):
    error_type = "conflict"


class NotFoundError(DairyFlowError):
    error_type = "not_found"


def failure(message: str, error_type: str = "validation", **extra) -> dict:
    return {"success": False, "error": message, "error_type": error_type, **extra}


def server_action(func):
    """
    Run a service operation and return its result dict.
    Domain errors become failures; database errors are logged and
    reported generically.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
        except DairyFlowError as exc:
            db.session.rollback()
            logger.info("%s rejected: %s", func.__name__, exc.message)
            return failure(exc.message, exc.error_type, **exc.details)
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("%s failed on the database", func.__name__)
            return failure(DATABASE_ERROR_MESSAGE, "database")
        if result is None:
            result = {}
        result.setdefault("success", True)
        return result
    return wrapper
