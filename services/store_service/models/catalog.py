"""Store catalogue models: products and their size/height variants.

Only the fields order pricing needs live here; the catalogue itself is
managed in the CMS.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import UTCDateTime
from sqlalchemy import Boolean, ForeignKey, Numeric, String, Uuid, true
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Product(Base):
    """Sellable product (e.g., 'Orthopedic Spring Mattress')."""

    __tablename__ = "store_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # Null until the merchandising team sets a price; such products cannot be ordered
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true()
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now
    )

    variants = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Product {self.name}>"


class ProductVariant(Base):
    """Size/height combination of a product with its own price."""

    __tablename__ = "store_product_variants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("store_products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    size: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # "72x60"
    height: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)  # "8 inch"
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    product = relationship("Product", back_populates="variants")

    @property
    def label(self) -> str:
        return " / ".join(part for part in (self.size, self.height) if part)

    def __repr__(self):
        return f"<ProductVariant {self.label or self.id}>"
