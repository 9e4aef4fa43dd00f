from __future__ import annotations

import httpx
import pytest

from api.shared.auth import TokenVerifier
from api.shared.exceptions import AuthError, IdentityServiceError
from infra.resources import IdentityServiceHTTPError
from tests.conftest import TOKEN, USER_ID


async def test_verify_returns_subject(identity):
    assert await TokenVerifier(identity).verify(TOKEN) == USER_ID


@pytest.mark.parametrize("token", [None, "", "   "])
async def test_blank_token_is_missing_without_lookup(identity, token):
    with pytest.raises(AuthError) as excinfo:
        await TokenVerifier(identity).verify(token)
    assert excinfo.value.reason == AuthError.MISSING
    assert excinfo.value.status_code == 401
    assert identity.lookups == []


async def test_rejected_token_is_invalid_or_expired(identity):
    with pytest.raises(AuthError) as excinfo:
        await TokenVerifier(identity).verify("forged")
    assert excinfo.value.reason == AuthError.INVALID_OR_EXPIRED


async def test_identity_outage_is_not_an_auth_failure(identity):
    identity.lookup_error = IdentityServiceHTTPError(503, "UNAVAILABLE")
    with pytest.raises(IdentityServiceError) as excinfo:
        await TokenVerifier(identity).verify(TOKEN)
    assert excinfo.value.status_code == 502


async def test_identity_transport_error(identity):
    identity.lookup_error = httpx.ConnectError("refused")
    with pytest.raises(IdentityServiceError):
        await TokenVerifier(identity).verify(TOKEN)
