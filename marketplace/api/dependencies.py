from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from marketplace.authz.guards import AuthorizationService
from marketplace.authz.matrix import load_matrix
from marketplace.core.config import SETTINGS
from marketplace.models.identity import GlobalRole, Identity, ShopRole
from marketplace.repos.order_repo import InMemoryOrderRepo
from marketplace.repos.product_repo import InMemoryProductRepo
from marketplace.repos.shop_repo import InMemoryShopRepo
from marketplace.services import token_service

logger = logging.getLogger(__name__)

# Tokens are issued by the identity provider; tokenUrl is documentation only.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/identity/token")

# --- Module-level singletons (in-memory stores, boot-time matrix) ---
product_repo = InMemoryProductRepo()
order_repo = InMemoryOrderRepo()
shop_repo = InMemoryShopRepo()

authorizer = AuthorizationService(
    load_matrix(SETTINGS.permission_matrix_path),
    products=product_repo,
    orders=order_repo,
    shops=shop_repo,
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _identity_from_claims(claims: dict) -> Identity:
    """Build an Identity; ValueError on any malformed claim."""
    shop_id = claims.get("shop_id")
    shop_role = claims.get("shop_role")
    return Identity(
        id=UUID(claims["sub"]),
        global_role=GlobalRole(claims["role"]),
        shop_id=UUID(shop_id) if shop_id is not None else None,
        shop_role=ShopRole(shop_role) if shop_role is not None else None,
    )


def require_identity(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Identity:
    """Validate the bearer token and return the caller's Identity.

    Used as a FastAPI dependency on every protected endpoint.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    try:
        UUID(claims["sub"])
    except ValueError:
        logger.warning("Token subject is not a UUID: %r", claims["sub"])
        raise _unauthorized("Invalid token subject") from None

    try:
        identity = _identity_from_claims(claims)
    except ValueError as e:
        logger.warning("Malformed identity claims rejected: %s", e)
        raise _unauthorized("Invalid token claims") from None

    logger.debug(
        "Token validated for user=%s role=%s shop=%s",
        identity.id,
        identity.global_role.value,
        identity.shop_id,
    )
    return identity


def get_authorizer() -> AuthorizationService:
    return authorizer
