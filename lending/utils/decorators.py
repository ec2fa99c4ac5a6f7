from functools import wraps

from flask import current_app
from flask_jwt_extended import get_jwt, verify_jwt_in_request
from sqlalchemy.exc import SQLAlchemyError

from lending.errors import LibraryError
from lending.extensions import db
from lending.utils.http import json_error


def role_required(*roles):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            claims = get_jwt()
            role = claims.get("role")
            if role not in roles:
                return json_error("Forbidden", 403, "FORBIDDEN")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def library_errors(operation: str):
    """Maps LibraryError to its 4xx answer and database failures to an opaque 500."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except LibraryError as e:
                db.session.rollback()
                return json_error(str(e), e.status_code, e.code, e.errors)
            except SQLAlchemyError as e:
                db.session.rollback()
                current_app.logger.exception(f"[{operation}] database error {kwargs}: {e}")
                return json_error("Internal server error", 500, "INTERNAL_ERROR")
        return wrapper
    return decorator
