import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def dispatch_bed():
    from dispatch.domain import dispatch

    bed = DomainFixture(dispatch)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(dispatch_bed):
    with dispatch_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def _reset_adapters():
    from dispatch.assignment import reset_scheduler
    from dispatch.inventory import reset_inventory
    from dispatch.notifier import reset_notifier

    reset_notifier()
    reset_inventory()
    reset_scheduler()
    yield
    reset_scheduler()
    reset_notifier()
    reset_inventory()


@pytest.fixture()
def notifier():
    from dispatch.notifier import get_notifier

    return get_notifier()


@pytest.fixture()
def inventory():
    from dispatch.inventory import get_inventory

    return get_inventory()


@pytest.fixture()
def scheduler():
    """An unstarted scheduler; sweeps run on the calling thread."""
    from dispatch.assignment.scheduler import ReconciliationScheduler

    return ReconciliationScheduler()


# ---------------------------------------------------------------------------
# Factories driven through commands
# ---------------------------------------------------------------------------
@pytest.fixture()
def record_order():
    from dispatch.order.intake import RecordOrder

    counter = {"n": 0}

    def _record(pickup=(12.9716, 77.5946), payment_method="Prepaid", delivery_fee=40.0, **overrides):
        counter["n"] += 1
        fields = {
            "order_number": f"ORD-{counter['n']:04d}",
            "customer_id": "cust-001",
            "store_id": "store-001",
            "items": json.dumps([{"product_id": "prod-1", "quantity": 2, "price": 150.0}]),
            "payment_method": payment_method,
            "shipping_address": "12 MG Road, Bengaluru",
            "items_total": 300.0,
            "delivery_fee": delivery_fee,
        }
        if pickup is not None:
            fields.update(pickup_lat=pickup[0], pickup_lng=pickup[1], pickup_address="Store 1, Brigade Road")
        fields.update(overrides)
        return current_domain.process(RecordOrder(**fields), asynchronous=False)

    return _record


@pytest.fixture()
def ready_order(record_order):
    """Record an order and walk it to ReadyForPickup without triggering assignment."""
    from dispatch.order.decisions import AcceptOrder, MarkReadyForPickup, StartProcessing

    def _ready(**kwargs):
        order_id = record_order(**kwargs)
        current_domain.process(AcceptOrder(order_id=order_id), asynchronous=False)
        current_domain.process(StartProcessing(order_id=order_id), asynchronous=False)
        current_domain.process(MarkReadyForPickup(order_id=order_id), asynchronous=False)
        return order_id

    return _ready


@pytest.fixture()
def online_courier():
    """Register a courier, optionally place it, and bring it online."""
    from dispatch.courier.availability import GoOnline
    from dispatch.courier.location import UpdateCourierLocation
    from dispatch.courier.registration import RegisterCourier

    def _online(name="Ravi", at=None, online=True):
        courier_id = current_domain.process(RegisterCourier(name=name, phone="9000000000"), asynchronous=False)
        if at is not None:
            current_domain.process(
                UpdateCourierLocation(courier_id=courier_id, lat=at[0], lng=at[1]),
                asynchronous=False,
            )
        if online:
            current_domain.process(GoOnline(courier_id=courier_id), asynchronous=False)
        return courier_id

    return _online
