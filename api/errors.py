"""API error handling utilities."""

from __future__ import annotations

import functools
import logging
import sqlite3
from typing import Any

import pydantic
from flask import jsonify

from api.exceptions import AppError

logger = logging.getLogger(__name__)


def error_response(
    kind: str,
    message: str,
    status_code: int,
    details: Any = None,
) -> tuple:
    """Return a consistent JSON error response."""
    body: dict[str, Any] = {"error": kind, "message": message}
    if details is not None:
        body["details"] = details
    return jsonify(body), status_code


def _validation_details(exc: pydantic.ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "body",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


def handle_errors(f):
    """Decorator that catches common exceptions and returns JSON errors."""

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except AppError as exc:
            if exc.status_code == 409:
                logger.warning("Conflict in %s: %s", f.__name__, exc)
            return error_response(exc.kind, str(exc), exc.status_code, exc.details)
        except pydantic.ValidationError as exc:
            return error_response(
                "VALIDATION_ERROR", "Invalid request", 400, _validation_details(exc)
            )
        except sqlite3.IntegrityError as exc:
            logger.warning("Integrity error in %s: %s", f.__name__, exc)
            return error_response("CONFLICT", str(exc), 409)
        except ValueError as exc:
            return error_response("VALIDATION_ERROR", str(exc), 400)
        except sqlite3.OperationalError:
            logger.exception("Database operational error in %s", f.__name__)
            return error_response("INTERNAL_ERROR", "Internal server error", 500)
        except (SystemExit, KeyboardInterrupt):
            raise
        except Exception:
            logger.exception("Unexpected error in %s", f.__name__)
            return error_response("INTERNAL_ERROR", "Internal server error", 500)

    return wrapper
