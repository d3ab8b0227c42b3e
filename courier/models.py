"""
Wire models for the remote brokerage API. Responses are validated here, at the edge:
a payload that does not match fails loudly instead of being coerced.
"""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from courier.order_state import Actor, OrderStatus, Role

PaymentStatus = Literal["PENDING", "PAID", "FAILED", "REFUNDED"]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Address(WireModel):
    street: str
    city: str
    state: str = ""
    zip_code: str = ""
    country: str
    latitude: float | None = None
    longitude: float | None = None


class PackageDetails(WireModel):
    weight: float
    dimensions: str | None = None
    is_fragile: bool = False
    description: str | None = None
    additional_details: dict[str, Any] = Field(default_factory=dict)


class OrderSnapshot(WireModel):
    id: str
    tracking_number: str
    status: OrderStatus
    client_id: str
    driver_id: str | None = None
    price: float = 0.0
    pickup_address: Address | None = None
    delivery_address: Address | None = None
    package_details: PackageDetails | None = None
    payment_status: PaymentStatus = "PENDING"
    commission_paid: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _driver_matches_status(self) -> "OrderSnapshot":
        if self.status is OrderStatus.CANCELLED:
            return self
        if self.status is OrderStatus.PENDING and self.driver_id is not None:
            raise ValueError("PENDING order must not have a driver assigned")
        if self.status is not OrderStatus.PENDING and self.driver_id is None:
            raise ValueError(f"{self.status.value} order must have a driver assigned")
        return self


class NewOrder(WireModel):
    """Order creation request. client_id defaults to the acting client."""

    client_id: str | None = None
    pickup_address: Address
    delivery_address: Address
    package_details: PackageDetails
    price: float | None = None


class User(WireModel):
    id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    role: Role
    is_active: bool = True

    def to_actor(self) -> Actor:
        return Actor(role=self.role, user_id=self.id)


class Notification(WireModel):
    id: str
    title: str
    message: str
    type: str = "info"
    read: bool = False
    created_at: datetime | None = None


class CommissionOrder(WireModel):
    id: str
    tracking_number: str
    price: float
    commission_paid: bool = False


class CommissionSummary(WireModel):
    order: CommissionOrder
    commission_rate: float
    commission_amount: float
    payment_status: str


class ApiEnvelope(BaseModel):
    """The one response layout the remote API is expected to use."""

    model_config = ConfigDict(extra="ignore")

    status: Literal["success"]
    data: dict[str, Any]
    message: str | None = None
