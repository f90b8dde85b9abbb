"""Cash-on-delivery settlement — the courier records that cash was collected.

A collected COD order has payment status Completed, which is what lets its
delivery be marked Delivered.
"""

from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.order import Order


@dispatch.command(part_of="Order")
class RecordCashCollected:
    order_id = Identifier(required=True)
    courier_id = Identifier(required=True)


@dispatch.command_handler(part_of=Order)
class SettlementHandler:
    @handle(RecordCashCollected)
    def record_cash_collected(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_cash_collected(command.courier_id)
        repo.add(order)
