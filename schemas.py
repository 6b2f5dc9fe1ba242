"""
Database Schemas for Coffee World Investments

Each record model mirrors one MongoDB collection. Records are frozen: the
repository builds a fresh list of them on every call, so nothing handed to
a view or an aggregator can be mutated behind its back.

- Product       -> "products"
- Order         -> "b2c_orders"
- OrderItem     -> "b2c_order_items"
- SampleRequest -> "b2b_sample_requests"
- Event         -> "events"
"""
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

DEFAULT_GRIND = "Whole Bean"


# ------------------ Enumerations ------------------

class ProductType(str, Enum):
    ROASTED_RETAIL = "roasted_retail"
    GREEN_EXPORT = "green_export"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    # Counted in reporting, never produced by a transition
    CANCELLED = "cancelled"


class SampleStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    COMPLETED = "completed"


class EventStatus(str, Enum):
    UPCOMING = "upcoming"
    PAST = "past"


# ------------------ Records ------------------

class Record(BaseModel):
    model_config = ConfigDict(frozen=True)


class Product(Record):
    id: str
    type: ProductType
    name: str
    description: str = ""
    image_url: str
    is_active: bool = False
    created_at: Optional[datetime] = None
    # roasted_retail
    price: float = Field(0, description="Current unit price in KES")
    original_price: Optional[float] = Field(None, description="Pre-discount price in KES")
    retail_stock: int = 0
    roast_level: str = "Medium"
    # green_export
    species: str = "Arabica"
    region: str
    grade: str = "AA"
    process: str = "Washed"
    cupping_score: Optional[float] = None
    available_bags: int = Field(0, description="60kg bags on offer")


class Order(Record):
    id: str
    customer_name: str = ""
    customer_phone: str = ""
    shipping_address: str = ""
    payment_reference: str = ""
    total_amount: float = 0
    status: str = OrderStatus.PENDING.value
    items_summary: str = ""
    created_at: Optional[datetime] = None


class OrderItem(Record):
    id: Optional[str] = None
    order_id: str
    product_id: str
    quantity: int = 0
    price_at_purchase: float = 0
    grind_type: str = DEFAULT_GRIND


class SampleRequest(Record):
    id: str
    product_id: Optional[str] = None
    coffee_name: str
    company_name: str
    contact_name: str
    email: str
    courier: str
    courier_account: str
    notes: Optional[str] = None
    status: str = SampleStatus.PENDING.value
    created_at: Optional[datetime] = None


class Event(Record):
    id: str
    title: str
    event_date: Optional[datetime] = None
    tag: str = "Event"
    location: str = ""
    description: str = ""
    image_url: str
    status: str = EventStatus.UPCOMING.value
    created_at: Optional[datetime] = None


# ------------------ Cart ------------------

class CartLine(Record):
    product_id: str = Field(..., description="Product id, always compared as a string")
    name: str
    unit_price: float = Field(0, ge=0)
    quantity: int = Field(1, ge=1)
    grind_type: str = DEFAULT_GRIND

    @field_validator("product_id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


# ------------------ Payloads ------------------

class CustomerDetails(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    customer_name: str = Field(..., min_length=1)
    customer_phone: str = Field(..., min_length=1)
    shipping_address: str = Field(..., min_length=1)
    payment_reference: str = Field(..., min_length=1, description="M-Pesa receipt code typed by the customer")

    @field_validator("payment_reference")
    @classmethod
    def upper_reference(cls, v: str) -> str:
        return v.upper()


class CheckoutRequest(CustomerDetails):
    items: List[CartLine] = []


class SampleRequestCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    product_id: Optional[str] = None
    coffee_name: str = Field(..., min_length=1)
    company_name: str = Field(..., min_length=1)
    contact_name: str = Field(..., min_length=1)
    email: EmailStr
    courier: str = Field(..., description="DHL | FedEx | UPS | Local | Other")
    courier_other: Optional[str] = None
    courier_account: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def resolve_courier(self):
        if self.courier == "Other":
            if not self.courier_other:
                raise ValueError("courier_other is required when courier is Other")
            self.courier = self.courier_other
        if self.courier == "Local":
            self.courier_account = None
        return self


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1)
    event_date: date
    tag: Optional[str] = None
    location: str = ""
    description: str = ""
    image_url: Optional[str] = None


class ProductCreate(BaseModel):
    type: ProductType = ProductType.ROASTED_RETAIL
    name: str = Field(..., min_length=1)
    description: str = ""
    image_url: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    retail_stock: Optional[int] = Field(None, ge=0)
    roast_level: Optional[str] = None
    species: Optional[str] = None
    region: Optional[str] = None
    grade: Optional[str] = None
    process: Optional[str] = None
    cupping_score: Optional[float] = Field(None, ge=0, le=100)
    available_bags: Optional[int] = Field(None, ge=0)


class ProductAdminUpdate(BaseModel):
    type: Optional[ProductType] = None
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    retail_stock: Optional[int] = Field(None, ge=0)
    roast_level: Optional[str] = None
    species: Optional[str] = None
    region: Optional[str] = None
    grade: Optional[str] = None
    process: Optional[str] = None
    cupping_score: Optional[float] = Field(None, ge=0, le=100)
    available_bags: Optional[int] = Field(None, ge=0)


class StatusUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    status: str = Field(..., min_length=1, description="Next status; compared case-insensitively")
