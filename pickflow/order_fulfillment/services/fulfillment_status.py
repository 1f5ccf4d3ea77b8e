"""
Fulfillment status derivation.

The order-level fulfillment status is a pure function of the items'
picked and requested quantities. ``FulfillmentStatusEngine.refresh``
persists the derived value after every ledger mutation and promotes the
coarse order status to fulfilled; it never demotes it.
"""

import logging
from typing import Iterable, Tuple

from ..models import AuditLog, FulfillmentStatus, Order, OrderStatus
from .workflow import OrderWorkflow

logger = logging.getLogger(__name__)


def derive_fulfillment_status(quantities: Iterable[Tuple[int, int]]) -> str:
    """
    Derive the fulfillment status from ``(picked, requested)`` pairs.

    An order without items is NOT_FULFILLED.
    """
    pairs = list(quantities)
    if not pairs or all(picked == 0 for picked, _ in pairs):
        return FulfillmentStatus.NOT_FULFILLED
    if all(picked == requested for picked, requested in pairs):
        return FulfillmentStatus.FULFILLED
    return FulfillmentStatus.PARTIALLY_FULFILLED


class FulfillmentStatusEngine:
    """Keeps ``Order.fulfillment_status`` in step with the order items."""

    @staticmethod
    def compute(order: Order) -> str:
        """Derive the current status straight from the database."""
        return derive_fulfillment_status(
            order.items.values_list('quantity_picked', 'quantity_requested')
        )

    @classmethod
    def refresh(cls, order: Order, user=None) -> str:
        """
        Recompute and store the fulfillment status of a locked order.

        Must run inside the transaction holding the order row lock.

        Returns:
            The derived fulfillment status
        """
        new_status = cls.compute(order)
        update_fields = []

        if order.fulfillment_status != new_status:
            AuditLog.log_status_change(
                order, order.fulfillment_status, new_status, user=user, field='fulfillment_status'
            )
            order.fulfillment_status = new_status
            update_fields.append('fulfillment_status')

        if new_status == FulfillmentStatus.FULFILLED and order.status != OrderStatus.FULFILLED:
            OrderWorkflow.validate_transition(order, OrderStatus.FULFILLED)
            AuditLog.log_status_change(
                order, order.status, OrderStatus.FULFILLED, user=user, notes="All items picked"
            )
            order.status = OrderStatus.FULFILLED
            update_fields.append('status')
            logger.info(f"Order {order.order_number} fully picked, status promoted to fulfilled")

        if update_fields:
            order.save(update_fields=update_fields + ['updated_at'])
        return new_status
