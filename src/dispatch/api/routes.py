"""FastAPI routes for the Dispatch domain.

Routes that may wait on assignment locks are plain ``def`` and run in the
threadpool.
"""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from dispatch import operations
from dispatch.api.schemas import (
    AssignCourierRequest,
    AssignmentResponse,
    CancelOrderRequest,
    CashCollectedRequest,
    CourierIdResponse,
    CourierStatsResponse,
    LocationRequest,
    OperationResponse,
    OrderIdResponse,
    OrderResponse,
    RateDeliveryRequest,
    ReasonRequest,
    RecordOrderRequest,
    RegisterCourierRequest,
    RejectAssignmentRequest,
    SchedulerStatusResponse,
    StatusHistoryResponse,
    StatusResponse,
    SweepResponse,
    UpdateDeliveryStatusRequest,
)
from dispatch.assignment import get_scheduler
from dispatch.assignment.coordinator import AssignmentResult
from dispatch.courier.location import UpdateCourierLocation
from dispatch.courier.registration import RegisterCourier
from dispatch.delivery.rating import RateDelivery
from dispatch.order.cancellation import CancelOrder
from dispatch.order.decisions import AcceptOrder, RejectOrder, StartProcessing
from dispatch.order.intake import RecordOrder
from dispatch.order.order import Order
from dispatch.order.settlement import RecordCashCollected
from dispatch.projections.courier_performance import CourierPerformance


def _assignment(result: AssignmentResult | None) -> AssignmentResponse | None:
    if result is None:
        return None
    return AssignmentResponse(
        outcome=result.outcome.value,
        order_id=result.order_id,
        courier_id=result.courier_id,
        delivery_id=result.delivery_id,
        distance_km=result.distance_km,
    )


def _operation(change: operations.StatusChange) -> OperationResponse:
    return OperationResponse(status=change.status, assignment=_assignment(change.assignment))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def record_order(body: RecordOrderRequest) -> OrderIdResponse:
    """Record an order handed over by checkout."""
    pickup = body.pickup_location
    drop = body.delivery_location
    command = RecordOrder(
        order_number=body.order_number,
        customer_id=body.customer_id,
        store_id=body.store_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        payment_method=body.payment_method,
        shipping_address=body.shipping_address,
        items_total=body.items_total,
        delivery_fee=body.delivery_fee,
        total_amount=body.total_amount,
        pickup_lat=pickup.lat if pickup else None,
        pickup_lng=pickup.lng if pickup else None,
        pickup_address=pickup.address if pickup else None,
        delivery_lat=drop.lat if drop else None,
        delivery_lng=drop.lng if drop else None,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=order_id)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    history = sorted(order.status_history or [], key=lambda h: h.timestamp)
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        courier_id=str(order.courier_id) if order.courier_id else None,
        status_history=[
            StatusHistoryResponse(status=h.status, timestamp=h.timestamp, actor=h.actor, note=h.note) for h in history
        ],
    )


@order_router.put("/{order_id}/accept", response_model=StatusResponse)
async def accept_order(order_id: str) -> StatusResponse:
    current_domain.process(AcceptOrder(order_id=order_id), asynchronous=False)
    return StatusResponse(status="Accepted")


@order_router.put("/{order_id}/reject", response_model=StatusResponse)
async def reject_order(order_id: str, body: ReasonRequest) -> StatusResponse:
    current_domain.process(RejectOrder(order_id=order_id, reason=body.reason), asynchronous=False)
    return StatusResponse(status="Rejected")


@order_router.put("/{order_id}/process", response_model=StatusResponse)
async def start_processing(order_id: str) -> StatusResponse:
    current_domain.process(StartProcessing(order_id=order_id), asynchronous=False)
    return StatusResponse(status="Processing")


@order_router.put("/{order_id}/ready", response_model=OperationResponse)
def mark_ready_for_pickup(order_id: str) -> OperationResponse:
    """Release the order for pickup and try to assign a courier straight away."""
    return _operation(operations.mark_ready_for_pickup(order_id))


@order_router.put("/{order_id}/assign", response_model=OperationResponse)
def assign_courier(order_id: str, body: AssignCourierRequest) -> OperationResponse:
    """Dispatcher assigns a specific courier to a waiting order."""
    return _operation(operations.assign_courier(order_id, body.courier_id))


@order_router.put("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> StatusResponse:
    current_domain.process(
        CancelOrder(order_id=order_id, reason=body.reason, cancelled_by=body.cancelled_by),
        asynchronous=False,
    )
    return StatusResponse(status="Cancelled")


@order_router.put("/{order_id}/cash-collected", response_model=StatusResponse)
async def record_cash_collected(order_id: str, body: CashCollectedRequest) -> StatusResponse:
    """Courier confirms cash was collected for a COD order."""
    current_domain.process(RecordCashCollected(order_id=order_id, courier_id=body.courier_id), asynchronous=False)
    return StatusResponse(status="cash_collected")


# ---------------------------------------------------------------------------
# Courier Router
# ---------------------------------------------------------------------------
courier_router = APIRouter(prefix="/couriers", tags=["couriers"])


@courier_router.post("", status_code=201, response_model=CourierIdResponse)
async def register_courier(body: RegisterCourierRequest) -> CourierIdResponse:
    command = RegisterCourier(name=body.name, phone=body.phone, role=body.role)
    courier_id = current_domain.process(command, asynchronous=False)
    return CourierIdResponse(courier_id=courier_id)


@courier_router.put("/{courier_id}/online", response_model=OperationResponse)
def go_online(courier_id: str) -> OperationResponse:
    return _operation(operations.toggle_courier_online(courier_id, online=True))


@courier_router.put("/{courier_id}/offline", response_model=OperationResponse)
def go_offline(courier_id: str) -> OperationResponse:
    return _operation(operations.toggle_courier_online(courier_id, online=False))


@courier_router.put("/{courier_id}/location", response_model=StatusResponse)
async def update_location(courier_id: str, body: LocationRequest) -> StatusResponse:
    command = UpdateCourierLocation(courier_id=courier_id, lat=body.lat, lng=body.lng, address=body.address)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="location_updated")


@courier_router.get("/{courier_id}/stats", response_model=CourierStatsResponse)
async def get_courier_stats(courier_id: str) -> CourierStatsResponse:
    """Delivery counts, earnings and rating for a courier."""
    results = current_domain.repository_for(CourierPerformance)._dao.query.filter(courier_id=courier_id).all().items
    if not results:
        return CourierStatsResponse(courier_id=courier_id)
    stats = results[0]
    return CourierStatsResponse(
        courier_id=courier_id,
        assigned=stats.assigned or 0,
        delivered=stats.delivered or 0,
        rejected=stats.rejected or 0,
        cancelled=stats.cancelled or 0,
        total_earnings=stats.total_earnings or 0.0,
        average_rating=stats.average_rating or 0.0,
        cod_collected_count=stats.cod_collected_count or 0,
        cod_collected_amount=stats.cod_collected_amount or 0.0,
    )


# ---------------------------------------------------------------------------
# Delivery Router
# ---------------------------------------------------------------------------
delivery_router = APIRouter(prefix="/deliveries", tags=["deliveries"])


@delivery_router.put("/{delivery_id}/status", response_model=OperationResponse)
def update_delivery_status(delivery_id: str, body: UpdateDeliveryStatusRequest) -> OperationResponse:
    return _operation(operations.update_delivery_status(delivery_id, body.status, reason=body.reason))


@delivery_router.put("/{delivery_id}/reject", response_model=OperationResponse)
def reject_assignment(delivery_id: str, body: RejectAssignmentRequest) -> OperationResponse:
    """Courier declines a pending assignment; the order is offered to someone else."""
    return _operation(operations.reject_assignment(delivery_id, reason=body.reason))


@delivery_router.put("/{delivery_id}/rate", response_model=StatusResponse)
async def rate_delivery(delivery_id: str, body: RateDeliveryRequest) -> StatusResponse:
    current_domain.process(
        RateDelivery(delivery_id=delivery_id, rating=body.rating, review=body.review),
        asynchronous=False,
    )
    return StatusResponse(status="rated")


# ---------------------------------------------------------------------------
# Dispatch Router (administrative)
# ---------------------------------------------------------------------------
dispatch_router = APIRouter(prefix="/dispatch", tags=["dispatch"])


@dispatch_router.post("/sweep", response_model=SweepResponse)
def run_sweep() -> SweepResponse:
    """Force one reconciliation sweep."""
    summary = operations.run_sweep_once()
    if summary is None:
        return SweepResponse(ran=False)
    return SweepResponse(
        ran=True,
        scanned=summary.scanned,
        assigned=summary.assigned,
        skipped=summary.skipped,
        unavailable=summary.unavailable,
        failed=summary.failed,
        healed=summary.healed,
    )


@dispatch_router.get("/scheduler", response_model=SchedulerStatusResponse)
async def scheduler_status() -> SchedulerStatusResponse:
    status = get_scheduler().status()
    return SchedulerStatusResponse(
        running=status["running"],
        sweep_in_progress=status["sweep_in_progress"],
        interval_seconds=status["interval_seconds"],
        runs=status["runs"],
    )
