from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AuthUser(BaseModel):
    """
    Authenticated caller as asserted by the identity provider's JWT.

    ``role`` is the provider-level claim (usually "authenticated"); the store
    role used for authorization comes from the caller's ``UserProfile``.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "authenticated"
