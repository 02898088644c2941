from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.errors import Unauthenticated

security = HTTPBearer(auto_error=False)


def decode_token(token: str) -> AuthUser:
    """Validate an identity-provider JWT and return the caller."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.AUTH_JWT_AUDIENCE,
            options={"verify_aud": settings.AUTH_JWT_AUDIENCE is not None},
        )
        return AuthUser(**payload)
    except (JWTError, ValidationError):
        raise Unauthenticated()


async def get_current_user(
    token: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> AuthUser:
    """
    Return the authenticated caller; every unauthenticated request gets 401.
    """
    if token is None:
        raise Unauthenticated()
    return decode_token(token.credentials)


async def get_optional_user(
    token: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Optional[AuthUser]:
    """Return the caller when a bearer token is sent, otherwise None."""
    if token is None:
        return None
    return decode_token(token.credentials)
