"""Pydantic API schemas for the Dispatch domain.

These are the external API contracts — separate from domain commands.
The routes translate between these schemas and commands or operations.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class OrderItemRequest(BaseModel):
    product_id: str
    quantity: int
    price: float = 0.0


class LocationRequest(BaseModel):
    lat: float
    lng: float
    address: str | None = None


class RecordOrderRequest(BaseModel):
    order_number: str
    customer_id: str
    store_id: str | None = None
    items: list[OrderItemRequest]
    payment_method: str = "Prepaid"
    shipping_address: str | None = None
    items_total: float = 0.0
    delivery_fee: float = 0.0
    total_amount: float | None = None
    pickup_location: LocationRequest | None = None
    delivery_location: LocationRequest | None = None


class ReasonRequest(BaseModel):
    reason: str


class CancelOrderRequest(BaseModel):
    reason: str
    cancelled_by: str = "customer"


class CashCollectedRequest(BaseModel):
    courier_id: str


class AssignCourierRequest(BaseModel):
    courier_id: str


class RegisterCourierRequest(BaseModel):
    name: str
    phone: str | None = None
    role: str = "Courier"


class UpdateDeliveryStatusRequest(BaseModel):
    status: str
    reason: str | None = None


class RejectAssignmentRequest(BaseModel):
    reason: str | None = None


class RateDeliveryRequest(BaseModel):
    rating: int
    review: str | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class CourierIdResponse(BaseModel):
    courier_id: str


class StatusResponse(BaseModel):
    status: str


class AssignmentResponse(BaseModel):
    outcome: str
    order_id: str
    courier_id: str | None = None
    delivery_id: str | None = None
    distance_km: float | None = None


class OperationResponse(BaseModel):
    status: str
    assignment: AssignmentResponse | None = None


class StatusHistoryResponse(BaseModel):
    status: str
    timestamp: datetime
    actor: str | None = None
    note: str | None = None


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    status: str
    payment_method: str
    payment_status: str
    courier_id: str | None = None
    status_history: list[StatusHistoryResponse] = Field(default_factory=list)


class CourierStatsResponse(BaseModel):
    courier_id: str
    assigned: int = 0
    delivered: int = 0
    rejected: int = 0
    cancelled: int = 0
    total_earnings: float = 0.0
    average_rating: float = 0.0
    cod_collected_count: int = 0
    cod_collected_amount: float = 0.0


class SweepResponse(BaseModel):
    ran: bool
    scanned: int = 0
    assigned: int = 0
    skipped: int = 0
    unavailable: int = 0
    failed: int = 0
    healed: int = 0


class SchedulerStatusResponse(BaseModel):
    running: bool
    sweep_in_progress: bool
    interval_seconds: float
    runs: int
