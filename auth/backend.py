"""
Session cookie authentication backend.

The session token is a JWT issued by fastapi-users' ``JWTStrategy`` and
carried in a cookie whose attributes come from ``CookieOptions``.
"""

from __future__ import annotations

from fastapi_users.authentication import (
    AuthenticationBackend,
    CookieTransport,
    JWTStrategy,
)

from auth.options import CookieOptions


def build_cookie_transport(cookie: CookieOptions, max_age: int) -> CookieTransport:
    attributes = cookie.attributes
    return CookieTransport(
        cookie_name=cookie.name,
        cookie_max_age=max_age,
        cookie_path=attributes.path,
        cookie_domain=attributes.domain,
        cookie_secure=attributes.secure,
        cookie_httponly=attributes.http_only,
        cookie_samesite=attributes.same_site.lower(),
    )


def build_auth_backend(
    cookie: CookieOptions, secret: str, lifetime_seconds: int
) -> AuthenticationBackend:
    """Combine the cookie transport with a JWT strategy of the given lifetime."""
    transport = build_cookie_transport(cookie, lifetime_seconds)

    def get_jwt_strategy() -> JWTStrategy:
        return JWTStrategy(secret=secret, lifetime_seconds=lifetime_seconds)

    return AuthenticationBackend(
        name="session-cookie",
        transport=transport,
        get_strategy=get_jwt_strategy,
    )
