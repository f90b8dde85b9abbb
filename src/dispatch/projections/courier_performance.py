"""Courier performance — per-courier delivery counts, earnings and rating.

One row per courier, keyed by courier id, built from delivery events and
the cash-collection events of COD orders. Earnings are the delivery fees of
completed deliveries; collected cash is what the courier owes back.
"""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer
from protean.utils.globals import current_domain

from dispatch.delivery.delivery import Delivery
from dispatch.delivery.events import (
    DeliveryCancelled,
    DeliveryCompleted,
    DeliveryCreated,
    DeliveryRated,
    DeliveryRejected,
)
from dispatch.domain import dispatch
from dispatch.order.events import CashCollected
from dispatch.order.order import Order


@dispatch.projection
class CourierPerformance:
    courier_id = Identifier(identifier=True, required=True)
    assigned = Integer(default=0)
    delivered = Integer(default=0)
    rejected = Integer(default=0)
    cancelled = Integer(default=0)
    total_earnings = Float(default=0.0)
    rating_count = Integer(default=0)
    rating_total = Integer(default=0)
    average_rating = Float(default=0.0)
    last_delivered_at = DateTime()
    cod_collected_count = Integer(default=0)
    cod_collected_amount = Float(default=0.0)


def _get_or_create(courier_id):
    repo = current_domain.repository_for(CourierPerformance)
    try:
        return repo.get(courier_id)
    except ObjectNotFoundError:
        return CourierPerformance(courier_id=courier_id)


def _save(record):
    current_domain.repository_for(CourierPerformance).add(record)


@dispatch.projector(projector_for=CourierPerformance, aggregates=[Delivery, Order])
class CourierPerformanceProjector:
    @on(DeliveryCreated)
    def on_delivery_created(self, event):
        record = _get_or_create(event.courier_id)
        record.assigned = (record.assigned or 0) + 1
        _save(record)

    @on(DeliveryCompleted)
    def on_delivery_completed(self, event):
        record = _get_or_create(event.courier_id)
        record.delivered = (record.delivered or 0) + 1
        record.total_earnings = round((record.total_earnings or 0.0) + (event.delivery_fee or 0.0), 2)
        record.last_delivered_at = event.delivered_at
        _save(record)

    @on(DeliveryRejected)
    def on_delivery_rejected(self, event):
        record = _get_or_create(event.courier_id)
        record.rejected = (record.rejected or 0) + 1
        _save(record)

    @on(DeliveryCancelled)
    def on_delivery_cancelled(self, event):
        record = _get_or_create(event.courier_id)
        record.cancelled = (record.cancelled or 0) + 1
        _save(record)

    @on(DeliveryRated)
    def on_delivery_rated(self, event):
        record = _get_or_create(event.courier_id)
        record.rating_count = (record.rating_count or 0) + 1
        record.rating_total = (record.rating_total or 0) + event.rating
        record.average_rating = round(record.rating_total / record.rating_count, 2)
        _save(record)

    @on(CashCollected)
    def on_cash_collected(self, event):
        record = _get_or_create(event.courier_id)
        record.cod_collected_count = (record.cod_collected_count or 0) + 1
        record.cod_collected_amount = round((record.cod_collected_amount or 0.0) + (event.amount or 0.0), 2)
        _save(record)
