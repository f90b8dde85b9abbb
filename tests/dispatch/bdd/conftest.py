"""Shared BDD fixtures and step definitions for the dispatch domain."""

import json

import pytest
from dispatch import operations
from dispatch.courier.availability import GoOnline
from dispatch.courier.courier import Courier
from dispatch.courier.location import UpdateCourierLocation
from dispatch.courier.registration import RegisterCourier
from dispatch.order.decisions import AcceptOrder, MarkReadyForPickup, StartProcessing
from dispatch.order.intake import RecordOrder
from dispatch.order.order import Order
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


@pytest.fixture()
def world():
    """Names and ids the scenario steps share."""
    return {"couriers": {}, "order_id": None, "delivery_id": None, "summary": None}


def _record_ready_order(lat, lng, payment_method):
    order_id = current_domain.process(
        RecordOrder(
            order_number="ORD-BDD-001",
            customer_id="cust-bdd",
            store_id="store-bdd",
            items=json.dumps([{"product_id": "prod-1", "quantity": 1, "price": 250.0}]),
            payment_method=payment_method,
            shipping_address="7 Church Street",
            items_total=250.0,
            delivery_fee=30.0,
            pickup_lat=lat,
            pickup_lng=lng,
            pickup_address="Store BDD",
        ),
        asynchronous=False,
    )
    for command in (AcceptOrder, StartProcessing, MarkReadyForPickup):
        current_domain.process(command(order_id=order_id), asynchronous=False)
    return order_id


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('courier "{name}" is online at {lat:f}, {lng:f}'))
def courier_online(world, name, lat, lng):
    courier_id = current_domain.process(RegisterCourier(name=name), asynchronous=False)
    current_domain.process(UpdateCourierLocation(courier_id=courier_id, lat=lat, lng=lng), asynchronous=False)
    current_domain.process(GoOnline(courier_id=courier_id), asynchronous=False)
    world["couriers"][name] = courier_id


@given(parsers.cfparse("an order ready for pickup at {lat:f}, {lng:f}"))
def prepaid_order_ready(world, lat, lng):
    world["order_id"] = _record_ready_order(lat, lng, "Prepaid")


@given(parsers.cfparse("a cash-on-delivery order ready for pickup at {lat:f}, {lng:f}"))
def cod_order_ready(world, lat, lng):
    world["order_id"] = _record_ready_order(lat, lng, "CashOnDelivery")


# ---------------------------------------------------------------------------
# Steps used both to set up and to act
# ---------------------------------------------------------------------------
@given("a reconciliation sweep runs")
@when("a reconciliation sweep runs")
def sweep_runs(world, scheduler):
    world["summary"] = operations.run_sweep_once(scheduler=scheduler)
    order = current_domain.repository_for(Order).get(world["order_id"])
    if order.courier_id:
        world["delivery_id"] = next(r.delivery_id for r in world["summary"].results if r.assigned)


@given(parsers.cfparse('courier "{name}" moves the delivery to "{status}"'))
@when(parsers.cfparse('courier "{name}" moves the delivery to "{status}"'))
def move_delivery(world, scheduler, name, status):
    operations.update_delivery_status(world["delivery_id"], status, scheduler=scheduler)


@when(parsers.cfparse('courier "{name}" tries to move the delivery to "{status}"'))
def try_move_delivery(world, scheduler, error, name, status):
    try:
        operations.update_delivery_status(world["delivery_id"], status, scheduler=scheduler)
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def order_status_is(world, status):
    order = current_domain.repository_for(Order).get(world["order_id"])
    assert order.status == status


@then(parsers.cfparse('the order is assigned to courier "{name}"'))
def order_assigned_to(world, name):
    order = current_domain.repository_for(Order).get(world["order_id"])
    assert order.courier_id == world["couriers"][name]


@then(parsers.cfparse('courier "{name}" is busy'))
def courier_is_busy(world, name):
    assert current_domain.repository_for(Courier).get(world["couriers"][name]).is_busy


@then(parsers.cfparse('courier "{name}" is free'))
def courier_is_free(world, name):
    assert not current_domain.repository_for(Courier).get(world["couriers"][name]).is_busy


@then(parsers.cfparse('the action fails with "{message}"'))
def action_fails(error, message):
    assert error["exc"] is not None
    assert message in str(error["exc"])
