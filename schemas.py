# schemas.py
"""
Request schemas

Pydantic models for every JSON body the API accepts. ``validate`` turns
pydantic's failures into errors.ValidationError with one entry per field.
"""
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import (
    BaseModel, EmailStr, Field, StrictInt, ValidationError as PydanticValidationError, field_validator, model_validator,
)

from core import mzn_to_usd, usd_str
from errors import ValidationError

DeliveryOption = Literal["standard", "pickup"]
PaymentMethod = Literal["cash", "transfer", "mpesa"]
OrderStatus = Literal["pending", "completed", "cancelled"]


def validate(model, data, message="Invalid request data"):
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        details = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationError(message, details=details) from exc


# Products
class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str
    category: str = Field(..., min_length=1, description="Free-text category label")
    price_mzn: int = Field(..., ge=0, description="Price in whole meticais")
    price_usd: Optional[Decimal] = Field(None, ge=0, description="Derived from price_mzn when omitted")
    stock: int = Field(..., ge=0)
    images: List[str] = Field(default_factory=list)
    specifications: Dict[str, str] = Field(default_factory=dict)
    status: str = "active"

    @model_validator(mode="after")
    def derive_price_usd(self):
        if self.price_usd is None:
            self.price_usd = mzn_to_usd(self.price_mzn)
        return self


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    price_mzn: Optional[int] = Field(None, ge=0)
    price_usd: Optional[Decimal] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    images: Optional[List[str]] = None
    specifications: Optional[Dict[str, str]] = None
    status: Optional[str] = None

    def changes(self):
        """Fields the caller actually sent, with price_usd re-derived on a bare MZN price change."""
        data = self.model_dump(exclude_unset=True, exclude_none=True)
        if "price_mzn" in data and "price_usd" not in data:
            data["price_usd"] = mzn_to_usd(data["price_mzn"])
        return data


class StockUpdate(BaseModel):
    stock: int = Field(..., ge=0)


# Cart
class CartItemCreate(BaseModel):
    session_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    quantity: StrictInt = Field(..., ge=1)


class QuantityUpdate(BaseModel):
    quantity: StrictInt = Field(..., ge=0, description="0 removes the line")


# Orders
class OrderItemIn(BaseModel):
    product_id: str = Field(..., min_length=1)
    product_name: str = Field(..., description="Snapshot of the product name at checkout")
    price_mzn: int = Field(..., ge=0)
    price_usd: Decimal = Field(..., ge=0)
    quantity: StrictInt = Field(..., ge=1)
    total_mzn: int = Field(..., ge=0)
    total_usd: Decimal = Field(..., ge=0)

    @model_validator(mode="after")
    def check_line_total(self):
        if self.total_mzn != self.price_mzn * self.quantity:
            raise ValueError("total_mzn must equal price_mzn * quantity")
        return self


class OrderRequest(BaseModel):
    customer_name: str = Field(..., min_length=2)
    customer_email: EmailStr
    customer_phone: str = Field(..., min_length=8)
    customer_company: Optional[str] = None
    delivery_address: str = Field(..., min_length=5)
    delivery_city: str = Field(..., min_length=1)
    delivery_postal_code: Optional[str] = None
    delivery_option: DeliveryOption
    payment_method: PaymentMethod
    items: List[OrderItemIn] = Field(..., min_length=1)
    total_mzn: int = Field(..., ge=0)
    total_usd: Decimal = Field(..., ge=0)
    notes: Optional[str] = None
    session_id: Optional[str] = Field(None, description="Server-side cart to clear once the order is placed")

    @field_validator("total_mzn")
    @classmethod
    def check_total(cls, total, info):
        # items is absent from info.data when it failed its own validation
        items = info.data.get("items")
        if items and total != sum(i.total_mzn for i in items):
            raise ValueError("total_mzn must equal the sum of the item totals")
        return total

    def record(self):
        """The order as handed to Storage.create_order (session_id is not stored)."""
        data = self.model_dump(exclude={"session_id"})
        data["customer_email"] = str(self.customer_email)
        data["customer_company"] = data["customer_company"] or None
        data["delivery_postal_code"] = data["delivery_postal_code"] or None
        data["notes"] = data["notes"] or None
        data["total_usd"] = usd_str(self.total_usd)
        for item in data["items"]:
            item["price_usd"] = usd_str(item["price_usd"])
            item["total_usd"] = usd_str(item["total_usd"])
        return data


class StatusUpdate(BaseModel):
    status: OrderStatus


# Admin
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
