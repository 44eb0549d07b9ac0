"""Uniform success/failure contract returned by every store operation."""
import logging
from functools import wraps
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.exc import SQLAlchemyError

from storefront.exceptions import StorefrontError, RemoteOperationFailedError


class Result:
    """Outcome of a store operation: `success` plus `data` or `error`."""

    __slots__ = ('success', 'data', 'error')

    def __init__(self, success: bool, data: Any = None, error: Optional[StorefrontError] = None):
        self.success = success
        self.data = data
        self.error = error

    @classmethod
    def ok(cls, data: Any = None) -> 'Result':
        return cls(True, data=data)

    @classmethod
    def fail(cls, error: StorefrontError) -> 'Result':
        return cls(False, error=error)

    @property
    def status_code(self) -> int:
        return self.error.status_code if self.error else 200

    def to_dict(self):
        if self.success:
            return {'success': True, 'data': self.data}
        return {'success': False, 'error': self.error.to_dict()}

    def __bool__(self):
        return self.success

    def __repr__(self):
        if self.success:
            return f"<Result(success=True, data={self.data!r})>"
        return f"<Result(success=False, error={self.error.code})>"


def store_operation(operation: str):
    """
    Catch failures at a store boundary and turn them into a failed Result.

    Any failure rolls back the store's session. Domain errors are returned
    as-is; database and blob-store errors are wrapped in
    RemoteOperationFailedError. The wrapped method is expected to touch local
    state only after its remote writes succeed.
    """
    def decorator(fn):
        logger = logging.getLogger(fn.__module__)

        @wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except StorefrontError as e:
                self.db.rollback()
                logger.info(f"{operation} rejected: {e.message}")
                return Result.fail(e)
            except (SQLAlchemyError, ClientError, BotoCoreError) as e:
                self.db.rollback()
                logger.error(f"✗ {operation} failed: {e}")
                return Result.fail(RemoteOperationFailedError(operation, e))
        return wrapper
    return decorator
