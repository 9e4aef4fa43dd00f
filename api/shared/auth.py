"""Identity token verification shared by the chat and conversation features."""
from typing import Optional

import httpx
import structlog
from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.shared.exceptions import AuthError, IdentityServiceError
from infra.resources import IdentityResource, IdentityServiceHTTPError

logger = structlog.get_logger("fixie.auth")

_BEARER = HTTPBearer(auto_error=False)


class TokenVerifier:
    """Resolves an identity token to the caller's stable subject id.

    No retries and no side effects; a blank token is rejected before the
    identity service is contacted.
    """

    def __init__(self, identity: IdentityResource):
        self.identity = identity

    async def verify(self, token: Optional[str]) -> str:
        if not token or not token.strip():
            raise AuthError(AuthError.MISSING, "No ID token provided")

        try:
            account = await self.identity.lookup(token)
        except IdentityServiceHTTPError as e:
            if e.status_code >= 500:
                raise IdentityServiceError(str(e), status=e.status_code) from e
            raise AuthError(
                AuthError.INVALID_OR_EXPIRED, f"Identity service rejected token: {e.code}"
            ) from e
        except httpx.HTTPError as e:
            raise IdentityServiceError(f"{type(e).__name__}: {e}") from e

        subject = account.get("localId")
        if not subject:
            raise AuthError(AuthError.INVALID_OR_EXPIRED, "Token resolved to no subject")
        return str(subject)


@inject
async def get_current_subject(
    bearer: Optional[HTTPAuthorizationCredentials] = Depends(_BEARER),
    verifier: TokenVerifier = Depends(Provide["services.token_verifier"]),
) -> str:
    """FastAPI dependency: ``Authorization: Bearer <idToken>`` → subject id."""
    token = bearer.credentials if bearer else None
    return await verifier.verify(token)
