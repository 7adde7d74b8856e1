"""Pydantic models for catalog API payloads."""

from datetime import datetime, timezone

from pydantic import BaseModel, field_validator

from models import Brand, Product


class LoginResponse(BaseModel):
    """Login exchange result. The issuer may omit the expiry."""

    token: str | None = None
    expires_in: int | None = None  # seconds
    expires_at: datetime | None = None

    @field_validator("expires_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class BrandPayload(BaseModel):
    id: int
    name: str

    def to_brand(self) -> Brand:
        return Brand(id=self.id, name=self.name.strip())


class ProductPayload(BaseModel):
    id_product: int
    subcategory: str | None = None
    chars_group: str | None = None  # display name
    total_qty: str | None = None  # "5", "10+", ...
    price: int | None = None
    country_abbr: str | None = None

    @field_validator("subcategory", "chars_group", "total_qty", "country_abbr", mode="before")
    @classmethod
    def _as_text(cls, value):
        if value is None:
            return None
        return str(value)

    def to_product(self, brand_id: int) -> Product:
        return Product(
            id=self.id_product,
            brand_id=brand_id,
            subcategory=self.subcategory,
            attribute_group=self.chars_group,
            total_quantity=self.total_qty,
            price=self.price,
            country_code=self.country_abbr,
        )
