"""Infrastructure resources: database, identity service, completion provider.

This module is part of the infra layer and must not import from application features.
"""
from typing import Any, Dict, Optional

import httpx
from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


class DatabaseResource:
    """Database resource for dependency injection."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = None
        self.session_factory = None

    async def init(self):
        """Initialize database connection."""
        if self.engine is not None:
            return self
        engine_kwargs: Dict[str, Any] = {"echo": False, "pool_pre_ping": True}
        if not self.database_url.startswith("sqlite"):
            engine_kwargs["pool_recycle"] = 3600
        self.engine = create_async_engine(self.database_url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        return self

    def get_session(self) -> AsyncSession:
        """Get database session (synchronous accessor)."""
        if self.session_factory is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self.session_factory()

    async def shutdown(self):
        """Shutdown database connection."""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None


class IdentityServiceHTTPError(Exception):
    """Non-2xx answer from the identity service."""

    def __init__(self, status_code: int, code: str, message: str = ""):
        self.status_code = status_code
        self.code = code
        super().__init__(f"{status_code} {code} {message}".strip())


class IdentityResource:
    """Identity Toolkit REST client (Firebase Authentication compatible).

    Token lookups use the public API key; listing and deleting accounts use an
    admin bearer token scoped to ``project_id``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        project_id: str,
        admin_token: str = "",
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.project_id = project_id
        self.admin_token = admin_token
        self.timeout = timeout
        self.client: Optional[httpx.AsyncClient] = None

    async def init(self):
        """Create the shared HTTP client."""
        if self.client is None:
            self.client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self

    def _require_client(self) -> httpx.AsyncClient:
        if self.client is None:
            raise RuntimeError("Identity client not initialized. Call init() first.")
        return self.client

    def _admin_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.admin_token}"} if self.admin_token else {}

    @staticmethod
    def _raise_for_error(resp: httpx.Response) -> None:
        if resp.is_success:
            return
        try:
            error = resp.json().get("error") or {}
        except ValueError:
            error = {}
        code = str(error.get("message") or resp.reason_phrase or "UNKNOWN")
        raise IdentityServiceHTTPError(resp.status_code, code, resp.text[:200])

    async def lookup(self, id_token: str) -> Dict[str, Any]:
        """Return the account record the identity service associates with a token."""
        resp = await self._require_client().post(
            "/v1/accounts:lookup",
            params={"key": self.api_key},
            json={"idToken": id_token},
        )
        self._raise_for_error(resp)
        users = resp.json().get("users") or []
        if not users:
            raise IdentityServiceHTTPError(400, "USER_NOT_FOUND")
        return users[0]

    async def list_users(
        self, max_results: int = 1000, page_token: Optional[str] = None
    ) -> Dict[str, Any]:
        """One page of accounts: ``{"users": [...], "nextPageToken": ...}``."""
        params: Dict[str, Any] = {"maxResults": max_results}
        if page_token:
            params["nextPageToken"] = page_token
        resp = await self._require_client().get(
            f"/v1/projects/{self.project_id}/accounts:batchGet",
            params=params,
            headers=self._admin_headers(),
        )
        self._raise_for_error(resp)
        return resp.json()

    async def delete_user(self, uid: str) -> None:
        resp = await self._require_client().post(
            f"/v1/projects/{self.project_id}/accounts:delete",
            json={"localId": uid},
            headers=self._admin_headers(),
        )
        self._raise_for_error(resp)

    async def shutdown(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None


class CompletionProviderResource:
    """Holds the process-wide OpenAI client."""

    def __init__(self, api_key: str, base_url: str = ""):
        self.api_key = api_key
        self.base_url = base_url
        self.client: Optional[AsyncOpenAI] = None

    async def init(self):
        """Initialize the OpenAI client; without an API key the client stays unset."""
        if self.client is None and self.api_key:
            # Retries and timeouts are owned by CompletionInvoker
            self.client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url or None,
                max_retries=0,
            )
        return self

    def get_client(self) -> AsyncOpenAI:
        if self.client is None:
            raise RuntimeError("Completion provider not configured. Set OPENAI_API_KEY.")
        return self.client

    async def shutdown(self):
        if self.client is not None:
            await self.client.close()
            self.client = None
