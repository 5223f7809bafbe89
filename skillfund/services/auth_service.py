"""Auth Service - Sign-up, sign-in and sign-out.

This module handles:
- Account creation against the backend auth endpoint
- Creating the matching `profiles` row with the chosen role
- Password sign-in, token refresh and best-effort sign-out

Interface Contract:
- sign_up(email, password, full_name, primary_role) -> AuthSession
- sign_in(email, password) -> AuthSession
- refresh(refresh_token) -> AuthSession
- sign_out(access_token) -> None
- Methods raise ValidationError for bad input, AuthServiceError otherwise

A sign-up that waits for email confirmation returns no access token, and
the backend only accepts profile writes from the user themselves, so the
profile row is then created at the first sign-in from the metadata stored
with the account.
"""

from __future__ import annotations

import logging
import re

from skillfund.models import UserRole
from skillfund.services.backend import AuthSession, BackendConsumer, BackendError
from skillfund.services.query import eq
from skillfund.services.validation import ValidationError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


class AuthServiceError(Exception):
    """Raised when sign-in or sign-up fails."""
    pass


class AuthService(BackendConsumer):
    """Service for account sessions."""

    def sign_up(
        self,
        email: str,
        password: str,
        full_name: str,
        primary_role: str,
    ) -> AuthSession:
        """Create an account and its profile row.

        Args:
            email: Login email
            password: Plain password (min 6 characters)
            full_name: Display name
            primary_role: One of the UserRole values

        Returns:
            AuthSession: Identity and tokens (tokens are None while the
            backend waits for email confirmation)

        Raises:
            ValidationError: If a field is invalid
            AuthServiceError: If the backend rejects the sign-up
        """
        email = (email or "").strip().lower()
        full_name = (full_name or "").strip()
        errors = {}
        if not EMAIL_PATTERN.match(email):
            errors["email"] = "Enter a valid email address"
        if len(password or "") < MIN_PASSWORD_LENGTH:
            errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        if not full_name:
            errors["full_name"] = "Full name is required"
        role = UserRole.parse(primary_role)
        if role is None:
            errors["primary_role"] = "Select your primary role"
        if errors:
            raise ValidationError(errors)

        try:
            session = self.backend.sign_up(
                email,
                password,
                {"full_name": full_name, "primary_role": role.value},
            )
            if session.access_token:
                self._write_profile(session, full_name, role)
        except BackendError as e:
            logger.error("Sign-up failed for %s: %s", email, e)
            raise AuthServiceError(f"Sign-up failed: {e}") from e

        if session.access_token:
            logger.info("New %s account %s", role.value, session.user_id)
        else:
            logger.info("New %s account %s awaiting email confirmation", role.value, session.user_id)
        return session

    def sign_in(self, email: str, password: str) -> AuthSession:
        """Exchange email and password for a session."""
        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationError({"email": "Email and password are required"})
        try:
            session = self.backend.sign_in(email, password)
        except BackendError as e:
            logger.warning("Sign-in failed for %s: %s", email, e)
            if e.status_code in (400, 401):
                raise AuthServiceError("Invalid email or password") from e
            raise AuthServiceError(f"Sign-in failed: {e}") from e
        self._ensure_profile(session)
        return session

    def refresh(self, refresh_token: str | None) -> AuthSession:
        """Renew an expired access token.

        Raises:
            AuthServiceError: If there is no refresh token or the backend
                rejects it
        """
        if not refresh_token:
            raise AuthServiceError("Session expired")
        try:
            return self.backend.refresh(refresh_token)
        except BackendError as e:
            logger.warning("Token refresh failed: %s", e)
            raise AuthServiceError("Session expired") from e

    def sign_out(self, access_token: str | None) -> None:
        if not access_token:
            return
        try:
            self.backend.sign_out(access_token)
        except BackendError as e:
            logger.warning("Sign-out failed: %s", e)

    def _write_profile(self, session: AuthSession, full_name: str, role: UserRole | None) -> None:
        row = {"id": session.user_id, "email": session.email, "full_name": full_name}
        if role is not None:
            row["primary_role"] = role.value
        self.backend.with_token(session.access_token).insert("profiles", row, upsert=True)

    def _ensure_profile(self, session: AuthSession) -> None:
        """Create the profile row from sign-up metadata when it is missing."""
        backend = self.backend.with_token(session.access_token)
        try:
            if backend.select_one("profiles", columns="id", filters=[eq("id", session.user_id)]):
                return
            self._write_profile(
                session,
                (session.metadata.get("full_name") or "").strip(),
                UserRole.parse(session.metadata.get("primary_role")),
            )
        except BackendError as e:
            logger.warning("Could not create profile for %s: %s", session.user_id, e)
            return
        logger.info("Created missing profile for %s", session.user_id)
