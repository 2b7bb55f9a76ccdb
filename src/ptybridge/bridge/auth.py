"""Shared-secret check for incoming WebSocket upgrades."""

from __future__ import annotations

from ptybridge.errors import AuthError

AUTH_HEADER = "authorization"
BEARER_PREFIX = "Bearer "


def is_authorized(header_value: str | None, token: str | None) -> bool:
    """Check an ``Authorization`` header value against the configured token.

    With no token configured every request is accepted.  Otherwise the
    header must be exactly ``Bearer <token>`` or exactly ``<token>``.
    """
    if token is None:
        return True
    if header_value is None:
        return False
    if header_value.startswith(BEARER_PREFIX):
        return header_value[len(BEARER_PREFIX):] == token
    return header_value == token


def authorize(header_value: str | None, token: str | None) -> None:
    """Like :func:`is_authorized` but raises AuthError on failure."""
    if not is_authorized(header_value, token):
        if header_value is None:
            raise AuthError("missing credential")
        raise AuthError("invalid credential")
