"""Backend Service - Abstraction layer for the hosted data backend.

This module provides a unified interface for the table queries and auth
calls the pages make against the Supabase project (PostgREST for tables,
GoTrue for auth) with consistent error handling.

Interface Contract:
- Table methods return list[dict] rows (or a single dict / None)
- All methods raise BackendError on failure
- Callers build predicates with skillfund.services.query helpers and
  should not depend on PostgREST parameter syntax
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable

import requests

from config import REQUEST_TIMEOUT, SUPABASE_ANON_KEY, SUPABASE_URL
from skillfund.services.query import AnyOf, Filter

logger = logging.getLogger(__name__)

Predicate = Filter | AnyOf


class BackendError(Exception):
    """Raised when a backend call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class AuthSession:
    """Tokens and identity returned by sign-in / sign-up."""
    user_id: str
    email: str
    access_token: str | None = None
    refresh_token: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class BaseBackendClient(ABC):
    """Abstract base class for backend clients."""

    @abstractmethod
    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Iterable[Predicate] = (),
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Read rows from a table.

        Args:
            table: Table name
            columns: Comma separated column list
            filters: Predicates that must all hold
            order: ``column.asc`` or ``column.desc``
            limit: Max number of rows

        Returns:
            list[dict]: Matching rows

        Raises:
            BackendError: If the call fails
        """
        pass

    @abstractmethod
    def insert(
        self,
        table: str,
        rows: dict[str, Any] | list[dict[str, Any]],
        *,
        upsert: bool = False,
    ) -> list[dict[str, Any]]:
        """Insert (or upsert on primary key) rows and return them as stored."""
        pass

    @abstractmethod
    def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        filters: Iterable[Predicate],
    ) -> list[dict[str, Any]]:
        """Update rows matching filters and return the updated rows."""
        pass

    @abstractmethod
    def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None) -> AuthSession:
        pass

    @abstractmethod
    def sign_in(self, email: str, password: str) -> AuthSession:
        pass

    @abstractmethod
    def refresh(self, refresh_token: str) -> AuthSession:
        """Exchange a refresh token for a new session."""
        pass

    @abstractmethod
    def sign_out(self, access_token: str) -> None:
        pass

    @abstractmethod
    def with_token(self, access_token: str | None) -> "BaseBackendClient":
        """Return a client that acts on behalf of the signed-in user."""
        pass

    def select_one(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Iterable[Predicate] = (),
    ) -> dict[str, Any] | None:
        rows = self.select(table, columns=columns, filters=filters, limit=1)
        return rows[0] if rows else None


class SupabaseClient(BaseBackendClient):
    """Supabase REST implementation over a shared requests session."""

    def __init__(
        self,
        url: str = SUPABASE_URL,
        api_key: str = SUPABASE_ANON_KEY,
        *,
        access_token: str | None = None,
        timeout: int = REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def with_token(self, access_token: str | None) -> "SupabaseClient":
        return SupabaseClient(
            self.url,
            self.api_key,
            access_token=access_token,
            timeout=self.timeout,
            session=self.session,
        )

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body (None when empty)."""
        if not self.url or not self.api_key:
            raise BackendError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
        try:
            response = self.session.request(
                method, f"{self.url}{path}", timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise BackendError(f"{method} {path} failed: {e}") from e

        logger.debug("[backend] %s %s -> %s", method, path, response.status_code)
        if response.status_code >= 400:
            try:
                body = response.json()
                detail = body.get("message") or body.get("msg") or body.get("error_description") or body.get("error")
            except ValueError:
                detail = response.text
            raise BackendError(
                f"{method} {path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Invalid JSON from {path}: {e}") from e

    @staticmethod
    def _params(filters: Iterable[Predicate]) -> list[tuple[str, str]]:
        return [f.to_param() for f in filters]

    def select(self, table, *, columns="*", filters=(), order=None, limit=None):
        params = [("select", columns), *self._params(filters)]
        if order:
            params.append(("order", order))
        if limit is not None:
            params.append(("limit", str(limit)))
        return self._request("GET", f"/rest/v1/{table}", params=params, headers=self._headers()) or []

    def insert(self, table, rows, *, upsert=False):
        prefer = "return=representation"
        if upsert:
            prefer += ",resolution=merge-duplicates"
        return self._request(
            "POST", f"/rest/v1/{table}", json=rows, headers=self._headers(prefer)
        ) or []

    def update(self, table, values, *, filters):
        params = self._params(filters)
        if not params:
            raise BackendError("Refusing to update without filters")
        return self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=params,
            json=values,
            headers=self._headers("return=representation"),
        ) or []

    @staticmethod
    def _session_from(body: dict[str, Any]) -> AuthSession:
        user = body.get("user") or body
        if not user.get("id"):
            raise BackendError("Auth response did not contain a user")
        return AuthSession(
            user_id=user["id"],
            email=user.get("email", ""),
            access_token=body.get("access_token"),
            refresh_token=body.get("refresh_token"),
            metadata=user.get("user_metadata") or {},
        )

    def sign_up(self, email, password, metadata=None):
        body = self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": metadata or {}},
            headers=self._headers(),
        )
        return self._session_from(body or {})

    def sign_in(self, email, password):
        body = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        return self._session_from(body or {})

    def refresh(self, refresh_token):
        body = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
            headers=self._headers(),
        )
        return self._session_from(body or {})

    def sign_out(self, access_token):
        headers = self._headers()
        headers["Authorization"] = f"Bearer {access_token}"
        self._request("POST", "/auth/v1/logout", headers=headers)


# Default client instance (can be swapped for testing)
class BackendClient:
    """Facade holding the process-wide backend client."""

    _instance: BaseBackendClient | None = None

    @classmethod
    def get_instance(cls) -> BaseBackendClient:
        """Get the configured backend client."""
        if cls._instance is None:
            cls._instance = SupabaseClient()
        return cls._instance

    @classmethod
    def set_instance(cls, client: BaseBackendClient) -> None:
        """Set a custom backend client (useful for testing)."""
        cls._instance = client

    @classmethod
    def reset(cls) -> None:
        """Reset to default client."""
        cls._instance = None


class BackendConsumer:
    """Mixin for services that talk to the backend through a lazy client."""

    def __init__(self, backend: BaseBackendClient | None = None):
        self._backend = backend

    @property
    def backend(self) -> BaseBackendClient:
        """Lazy load backend client."""
        if self._backend is None:
            self._backend = BackendClient.get_instance()
        return self._backend
