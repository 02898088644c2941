"""User profiles: the store-side record of an identity-provider user and its role."""

import uuid
from datetime import datetime
from typing import Optional

from libs.auth.access import Role
from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import UTCDateTime
from services.store_service.models.enums import enum_values
from sqlalchemy import Enum as SAEnum
from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class UserProfile(Base):
    """Role claim for an authenticated user, looked up by auth id."""

    __tablename__ = "store_user_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    auth_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    role: Mapped[Role] = mapped_column(
        SAEnum(Role, values_callable=enum_values, name="store_user_role_enum"),
        default=Role.CUSTOMER,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now
    )

    def __repr__(self):
        return f"<UserProfile {self.auth_id} role={self.role}>"
