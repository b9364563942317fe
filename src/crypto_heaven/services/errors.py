"""Exceptions raised by the service layer.

The API layer maps each subclass onto an HTTP status code; see
``crypto_heaven.main``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class ServiceError(RuntimeError):
    """Base exception for failures surfaced by service operations."""


class NotFoundError(ServiceError):
    """Raised when a referenced user, community, message or thread is missing."""


class UnauthorizedError(ServiceError):
    """Raised when the acting user lacks the capability for an operation."""


class ConflictError(ServiceError):
    """Raised when a unique handle or membership already exists."""


class OperationFailedError(ServiceError):
    """Wraps an unexpected storage failure.

    The message is prefixed with the failing operation, e.g.
    ``"Failed to send message: <cause>"``.
    """


@contextmanager
def service_operation(db: Session, operation: str) -> Iterator[None]:
    """Roll back and log any failure raised while performing ``operation``.

    Service errors propagate unchanged; storage errors are wrapped in
    ``OperationFailedError`` so callers never see raw driver exceptions.
    """
    try:
        yield
    except ServiceError as exc:
        db.rollback()
        logger.warning("Error while trying to %s: %s", operation, exc)
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error while trying to %s", operation)
        raise OperationFailedError(f"Failed to {operation}: {exc}") from exc
