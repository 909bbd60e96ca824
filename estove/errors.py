"""
Error taxonomy shared by the stores and the HTTP layer.

Each error carries the public message and the HTTP status it maps to; the
full cause (if any) is logged where it is raised, never sent to the client.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError


class EStoveError(Exception):
    """Base exception for all eStove errors"""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(EStoveError):
    """Malformed or out-of-range input"""

    status_code = 400


class NotFoundError(EStoveError):
    """Unknown identifier"""

    status_code = 404


class PersistenceError(EStoveError):
    """Database unreachable or a write failed"""

    status_code = 500


def describe_errors(errors) -> str:
    """Flatten pydantic error dicts into one readable line."""
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


@contextmanager
def persistence(log: logging.Logger, message: str):
    """Turn driver/ORM failures into a PersistenceError with a public message."""
    try:
        yield
    except SQLAlchemyError as e:
        log.exception("%s: %s", message, e)
        raise PersistenceError(message) from e
