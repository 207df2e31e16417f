"""Persistence errors raised by the metadata store."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import exc as sa_exc

__all__ = [
    "AppError",
    "RepositoryError",
    "DuplicateRecordError",
    "MetadataStoreUnavailableError",
    "handle_sqlalchemy_errors",
]


class AppError(Exception):
    """Base class for application specific errors."""


class RepositoryError(AppError):
    """Base class for metadata store failures."""


class DuplicateRecordError(RepositoryError):
    """Raised when a stored filename is recorded twice."""


class MetadataStoreUnavailableError(RepositoryError):
    """Raised when the database cannot be reached or is locked."""


def _describe(entity: str | None, key: str | None, message: str) -> str:
    if entity and key:
        return f"{entity} '{key}': {message}"
    if entity:
        return f"{entity}: {message}"
    return message


@contextmanager
def handle_sqlalchemy_errors(*, entity: str | None = None, key: str | None = None) -> Iterator[None]:
    """Translate SQLAlchemy errors into :class:`RepositoryError` subclasses."""

    try:
        yield
    except sa_exc.IntegrityError as exc:
        raise DuplicateRecordError(_describe(entity, key, "already recorded")) from exc
    except sa_exc.OperationalError as exc:
        raise MetadataStoreUnavailableError(_describe(entity, key, "metadata store unavailable")) from exc
    except sa_exc.SQLAlchemyError as exc:
        raise RepositoryError(_describe(entity, key, "database operation failed")) from exc
