"""Access-token transport: the session cookie and the bearer header."""

from __future__ import annotations

from fastapi import Request, Response

from core import decode_token, settings

ACCESS_COOKIE = "access_token"


def _cookie_is_secure() -> bool:
    if settings.allow_insecure_http_cookies:
        return False
    return settings.app_env.strip().lower() not in {"local", "test"}


def read_access_token(request: Request) -> str | None:
    """Return the raw token from the cookie, falling back to ``Authorization: Bearer``."""
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    scheme, _, value = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def access_subject(token: str) -> str | None:
    """Return the user id carried by a valid access token, else None."""
    try:
        payload = decode_token(token)
    except ValueError:
        return None
    subject = payload.get("sub")
    if payload.get("type") != "access" or not isinstance(subject, str):
        return None
    return subject.strip() or None


def issue_access_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=ACCESS_COOKIE,
        value=token,
        max_age=settings.access_token_expire_minutes * 60,
        path="/",
        httponly=True,
        secure=_cookie_is_secure(),
        samesite="lax",
    )


def revoke_access_cookie(response: Response) -> None:
    response.delete_cookie(
        key=ACCESS_COOKIE,
        path="/",
        httponly=True,
        secure=_cookie_is_secure(),
        samesite="lax",
    )
