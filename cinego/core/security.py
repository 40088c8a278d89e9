"""
Identity provider integration.

Users sign in with the hosted identity provider, which hands the client a
signed bearer token. We never see passwords: we only verify that token and
read the user id, email and role flag from its claims.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import logging

from cinego.config import settings
from cinego.core.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller as described by the identity provider"""
    id: str
    email: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == settings.ADMIN_ROLE

    @property
    def is_owner(self) -> bool:
        return bool(self.email) and self.email.lower() in settings.OWNER_EMAILS


def decode_identity_token(token: str) -> Dict[str, Any]:
    """
    Verify an identity provider token and return its claims
    """
    options = {"verify_aud": settings.IDENTITY_JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            settings.IDENTITY_JWT_SECRET,
            algorithms=[settings.IDENTITY_JWT_ALGORITHM],
            audience=settings.IDENTITY_JWT_AUDIENCE,
            options=options,
        )
    except JWTError as e:
        logger.warning(f"Rejected identity token: {e}")
        raise AuthenticationError("Could not validate credentials")


def user_from_claims(claims: Dict[str, Any]) -> CurrentUser:
    user_id = claims.get("sub")
    if not user_id:
        raise AuthenticationError("Token has no subject")

    # Role flags live in the provider's metadata bag; some tokens flatten it
    metadata = claims.get("metadata") or {}
    role = claims.get("role") or metadata.get("role")

    return CurrentUser(id=str(user_id), email=claims.get("email"), role=role)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> CurrentUser:
    """
    Get the signed-in user from the bearer token
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing bearer token")
    return user_from_claims(decode_identity_token(credentials.credentials))


async def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """
    Require admin role for endpoint
    """
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user
