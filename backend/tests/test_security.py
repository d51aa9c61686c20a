import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt
from unittest.mock import AsyncMock, MagicMock, patch

from intranet_search.core.security import (
    TokenVerificationError,
    extract_bearer_token,
    get_clerk_jwks,
    resolve_user_id,
    verify_clerk_token,
)

KID = "ins_test_key"


@pytest.fixture(scope="module")
def private_pem():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="module")
def jwks(private_pem):
    public = jwk.construct(private_pem, "RS256").public_key().to_dict()
    return {"keys": [{**public, "kid": KID, "use": "sig"}]}


@pytest.fixture
def mock_jwks(jwks):
    with patch("intranet_search.core.security.get_clerk_jwks", AsyncMock(return_value=jwks)) as mocked:
        yield mocked


def make_token(private_pem, kid=KID, **claims):
    payload = {"sub": "user_123", "exp": int(time.time()) + 300}
    payload.update(claims)
    headers = {"kid": kid} if kid else None
    return jwt.encode(payload, private_pem, algorithm="RS256", headers=headers)


class TestVerifyClerkToken:
    """Test Clerk JWT verification."""

    @pytest.mark.asyncio
    async def test_valid_token(self, private_pem, mock_jwks):
        """A signed, unexpired token returns its claims."""
        payload = await verify_clerk_token(make_token(private_pem))

        assert payload["sub"] == "user_123"

    @pytest.mark.asyncio
    async def test_malformed_token(self, mock_jwks):
        with pytest.raises(TokenVerificationError, match="Malformed token"):
            await verify_clerk_token("not-a-jwt")

    @pytest.mark.asyncio
    async def test_missing_kid(self, private_pem, mock_jwks):
        with pytest.raises(TokenVerificationError, match="kid"):
            await verify_clerk_token(make_token(private_pem, kid=None))

        mock_jwks.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_kid(self, private_pem, mock_jwks):
        with pytest.raises(TokenVerificationError, match="matching key"):
            await verify_clerk_token(make_token(private_pem, kid="rotated_key"))

    @pytest.mark.asyncio
    async def test_expired_token(self, private_pem, mock_jwks):
        """Expired tokens fail signature verification."""
        token = make_token(private_pem, exp=int(time.time()) - 60)

        with pytest.raises(TokenVerificationError, match="verification failed"):
            await verify_clerk_token(token)

    @pytest.mark.asyncio
    async def test_token_signed_by_other_key(self, mock_jwks):
        other = rsa.generate_private_key(public_exponent=65537, key_size=2048).private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()

        with pytest.raises(TokenVerificationError, match="verification failed"):
            await verify_clerk_token(make_token(other))

    @pytest.mark.asyncio
    async def test_missing_subject(self, private_pem, mock_jwks):
        with pytest.raises(TokenVerificationError, match="missing subject"):
            await verify_clerk_token(make_token(private_pem, sub=""))


class TestGetClerkJwks:
    """Test JWKS retrieval."""

    @pytest.mark.asyncio
    async def test_requires_secret_key(self):
        with patch("intranet_search.core.security.settings.CLERK_SECRET_KEY", None):
            with pytest.raises(TokenVerificationError, match="CLERK_SECRET_KEY"):
                await get_clerk_jwks()

    @pytest.mark.asyncio
    async def test_fetches_with_bearer_secret(self):
        response = MagicMock(status_code=200)
        response.json.return_value = {"keys": []}
        client = AsyncMock()
        client.get = AsyncMock(return_value=response)
        client.__aenter__.return_value = client

        with patch("intranet_search.core.security.settings.CLERK_SECRET_KEY", "sk_test_123"), \
                patch("intranet_search.core.security.httpx.AsyncClient", return_value=client):
            assert await get_clerk_jwks() == {"keys": []}

        headers = client.get.await_args.kwargs["headers"]
        assert headers == {"Authorization": "Bearer sk_test_123"}

    @pytest.mark.asyncio
    async def test_http_error(self):
        client = AsyncMock()
        client.get = AsyncMock(return_value=MagicMock(status_code=401))
        client.__aenter__.return_value = client

        with patch("intranet_search.core.security.settings.CLERK_SECRET_KEY", "sk_test_123"), \
                patch("intranet_search.core.security.httpx.AsyncClient", return_value=client):
            with pytest.raises(TokenVerificationError, match="HTTP 401"):
                await get_clerk_jwks()


class TestResolveUserId:
    """Test caller identity resolution for search logging."""

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "Token abc"])
    def test_extract_bearer_token_rejects(self, header):
        assert extract_bearer_token(header) is None

    def test_extract_bearer_token(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.asyncio
    async def test_anonymous(self):
        assert await resolve_user_id(None) is None

    @pytest.mark.asyncio
    async def test_valid_token(self, private_pem, mock_jwks):
        token = make_token(private_pem, sub="user_42")

        assert await resolve_user_id(f"Bearer {token}") == "user_42"

    @pytest.mark.asyncio
    async def test_invalid_token_resolves_to_anonymous(self, mock_jwks):
        """A bad token never fails the search."""
        assert await resolve_user_id("Bearer garbage") is None
