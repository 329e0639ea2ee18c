"""Sign-in stub: a known email plus any non-empty password."""

from __future__ import annotations

import logging

from siteportal.data.models import User

logger = logging.getLogger(__name__)

INVALID_EMAIL = "Invalid email address. Please contact Admin."
MISSING_PASSWORD = "Please enter your password."


class AuthenticationError(Exception):
    """Raised when sign-in fails. The message is safe to show to the user."""


def authenticate(users: list[User], email: str, password: str) -> User:
    """Return the user whose email matches (case-insensitive).

    Raises AuthenticationError for an unknown email or an empty password.
    """
    wanted = (email or "").strip().lower()
    user = next((u for u in users if u.email.lower() == wanted), None)
    if user is None:
        logger.warning("Sign-in rejected for unknown email %r", email)
        raise AuthenticationError(INVALID_EMAIL)
    if not password:
        raise AuthenticationError(MISSING_PASSWORD)

    logger.info("User %s signed in", user.id)
    return user
