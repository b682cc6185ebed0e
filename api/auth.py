"""Bearer-token verification and role gating.

Tokens are issued outside the API (see ``main.py issue-token``). A token is a
signed, timestamped ``{"username", "role"}`` payload made with the app's
``SECRET_KEY``.
"""

from __future__ import annotations

import functools
from enum import Enum
from typing import Any

from flask import current_app, g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from api.exceptions import AuthenticationError, AuthorizationError
from config import settings

_TOKEN_SALT = "auth-token"


class Role(str, Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"


def _serializer(secret_key: str | None = None) -> URLSafeTimedSerializer:
    key = secret_key if secret_key is not None else current_app.config["SECRET_KEY"]
    return URLSafeTimedSerializer(key, salt=_TOKEN_SALT)


def issue_token(username: str, role: Role | str, secret_key: str | None = None) -> str:
    """Sign a token for *username* with *role*.

    Uses the current app's SECRET_KEY unless *secret_key* is given.
    """
    role = Role(role)
    return _serializer(secret_key).dumps({"username": username, "role": role.value})


def verify_token(token: str, max_age: int | None = None) -> dict[str, Any]:
    """Return the token payload or raise AuthenticationError."""
    max_age = settings.auth_token_max_age if max_age is None else max_age
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired as exc:
        raise AuthenticationError("Authentication token has expired") from exc
    except BadSignature as exc:
        raise AuthenticationError("Invalid authentication token") from exc

    if not isinstance(payload, dict) or "username" not in payload:
        raise AuthenticationError("Invalid authentication token")
    try:
        payload["role"] = Role(payload.get("role"))
    except ValueError as exc:
        raise AuthenticationError("Invalid authentication token") from exc
    return payload


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authentication required")
    return token.strip()


def require_roles(*roles: Role):
    """Decorator: authenticate the request and require one of *roles*.

    The verified payload is stored on ``flask.g.user``. Place it below
    ``handle_errors`` so auth failures become JSON responses.
    """
    allowed = set(roles)

    def decorator(f):
        @functools.wraps(f)
        def wrapper(*args, **kwargs):
            user = verify_token(_bearer_token())
            if allowed and user["role"] not in allowed:
                raise AuthorizationError("You do not have permission to perform this action")
            g.user = user
            return f(*args, **kwargs)

        return wrapper

    return decorator
