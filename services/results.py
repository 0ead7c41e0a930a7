"""
Typed results for the public service operations.

Expected business conditions travel as a failed Result carrying a ServiceError;
only infrastructure failures propagate as exceptions.
"""

import logging
from functools import wraps
from flask import jsonify
from extensions import db
from services.errors import ServiceError

logger = logging.getLogger(__name__)


class Result:
    __slots__ = ('ok', 'value', 'error')

    def __init__(self, ok, value=None, error=None):
        self.ok = ok
        self.value = value
        self.error = error

    @classmethod
    def success(cls, value=None):
        return cls(True, value=value)

    @classmethod
    def failure(cls, error):
        return cls(False, error=error)

    @property
    def kind(self):
        return None if self.ok else self.error.kind

    def unwrap(self):
        if not self.ok:
            raise self.error
        return self.value

    def to_dict(self):
        if self.ok:
            return {'success': True, 'data': self.value}
        return {'success': False, 'error': self.error.to_dict()}

    def to_response(self):
        status = 200 if self.ok else self.error.status_code
        return jsonify(self.to_dict()), status

    def __repr__(self):
        if self.ok:
            return f'<Result ok {self.value!r}>'
        return f'<Result {self.error.kind}: {self.error.message}>'


def service_operation(func):
    """Run an operation as one database transaction and wrap its outcome in a Result."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            value = func(*args, **kwargs)
            db.session.commit()
        except ServiceError as exc:
            db.session.rollback()
            logger.info(f"{func.__name__} refused: {exc.kind} ({exc.message})")
            return Result.failure(exc)
        except Exception:
            db.session.rollback()
            logger.exception(f"{func.__name__} failed")
            raise
        return Result.success(value)
    return wrapper
