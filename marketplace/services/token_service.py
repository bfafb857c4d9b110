"""Bearer token validation (ES256).

Token issuance belongs to the identity provider; this service only
verifies what arrives. ``create_access_token`` exists for local runs and
tests, signed with the same ephemeral key the verifier trusts.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

# Dev/test: ephemeral EC key pair generated on import.
# Production would load the identity provider's public key instead.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "marketplace-identity"
AUDIENCE = "marketplace-api"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(
    *,
    sub: str,
    role: str,
    shop_id: str | None = None,
    shop_role: str | None = None,
    ttl_minutes: int = ACCESS_TOKEN_TTL_MIN,
) -> str:
    """Sign an access token carrying one global role and an optional shop."""
    now = datetime.now(UTC)
    payload: dict[str, object] = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ttl_minutes),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "role": role,
    }
    if shop_id is not None:
        payload["shop_id"] = shop_id
    if shop_role is not None:
        payload["shop_role"] = shop_role
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 and requires sub/role/exp/iat/jti.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "role", "exp", "iat", "jti"]},
    )
