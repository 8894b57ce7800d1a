"""Account and access-token services."""

from .accounts import (
    authenticate,
    change_password,
    normalize_email,
    register_account,
    validate_password_strength,
)
from .tokens import (
    ACCESS_COOKIE,
    access_subject,
    issue_access_cookie,
    read_access_token,
    revoke_access_cookie,
)

__all__ = [
    "ACCESS_COOKIE",
    "access_subject",
    "authenticate",
    "change_password",
    "issue_access_cookie",
    "normalize_email",
    "read_access_token",
    "register_account",
    "revoke_access_cookie",
    "validate_password_strength",
]
