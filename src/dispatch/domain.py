"""Dispatch bounded context — Courier Assignment and Delivery Lifecycle.

Matches ready-to-ship orders to nearby couriers, drives the order and
delivery state machines, and reconciles unassigned orders and stuck
courier state with a recurring background sweep. Delivery completion is
gated on cash-on-delivery settlement.
"""

from protean.domain import Domain

dispatch = Domain(name="dispatch")
