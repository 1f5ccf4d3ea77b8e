"""
Administrative reset operations.

Each operation runs in a single transaction: picking evidence, picked
quantities, statuses and dispatch fields change together or not at all.
"""

import logging
from typing import Dict, Any

from django.db import transaction
from django.utils import timezone

from ..models import (
    Order, OrderItem, OrderStatus, FulfillmentStatus, DispatchStatus,
    Pick, PickScan, AuditLog
)
from ..exceptions import BusinessException
from .order_service import get_order

logger = logging.getLogger(__name__)

CLEARED_DISPATCH_FIELDS = {
    'dispatch_note_id': None,
    'dispatch_status': DispatchStatus.CLEARED,
    'dispatch_error': None,
    'dispatch_payload': None,
    'dispatch_quantities_source': None,
    'dispatch_attempt_id': None,
    'dispatched_at': None,
}


class ResetService:
    """Service class for administrative resets."""

    @staticmethod
    def reset_order(order_id, user=None) -> Dict[str, Any]:
        """
        Undo all picking of one order.

        Deletes its picks and scans, zeroes picked quantities, sets the
        fulfillment status to NOT_FULFILLED and demotes a fulfilled order
        to open. A committed delivery note is cleared; a failed attempt's
        error is dropped.

        Raises:
            BusinessException: If a dispatch is in flight for the order
        """
        with transaction.atomic():
            order = get_order(order_id, for_update=True)

            if order.is_dispatch_pending:
                raise BusinessException(
                    f"Order {order.order_number} is being dispatched; reset it once the dispatch completes",
                    "DISPATCH_IN_PROGRESS"
                )

            old_values = {
                'status': order.status,
                'fulfillment_status': order.fulfillment_status,
                'dispatch_status': order.dispatch_status,
                'dispatch_note_id': order.dispatch_note_id,
            }

            scans_deleted = PickScan.objects.filter(order_item__order=order).count()
            PickScan.objects.filter(order_item__order=order).delete()
            picks_deleted, _ = order.picks.all().delete()
            items_reset = order.items.filter(quantity_picked__gt=0).update(quantity_picked=0)

            if order.status == OrderStatus.FULFILLED:
                order.status = OrderStatus.OPEN
            order.fulfillment_status = FulfillmentStatus.NOT_FULFILLED

            if order.dispatch_status == DispatchStatus.COMMITTED:
                for name, value in CLEARED_DISPATCH_FIELDS.items():
                    setattr(order, name, value)
            elif order.dispatch_error:
                order.dispatch_error = None
                order.dispatch_payload = None
            order.save()

            AuditLog.log_change(
                entity=order,
                action='reset',
                user=user,
                old_values=old_values,
                new_values={
                    'status': order.status,
                    'fulfillment_status': order.fulfillment_status,
                    'dispatch_status': order.dispatch_status,
                },
                metadata={
                    'scans_deleted': scans_deleted,
                    'picks_deleted': picks_deleted,
                    'items_reset': items_reset,
                },
            )

            logger.info(
                f"Order {order.order_number} reset: {scans_deleted} scans, {picks_deleted} picks removed"
            )
            return {
                'success': True,
                'order_number': order.order_number,
                'scans_deleted': scans_deleted,
                'picks_deleted': picks_deleted,
                'items_reset': items_reset,
                'message': f"Order {order.order_number} reset",
            }

    @staticmethod
    def reset_all_orders(user=None) -> Dict[str, Any]:
        """
        Put every order back to its unpicked, undispatched state.

        Dispatch fields are nulled, fulfilled orders go back to open, all
        fulfillment statuses become NOT_FULFILLED, all picks and scans are
        deleted and every picked quantity is zeroed.
        """
        with transaction.atomic():
            order_count = len(Order.objects.select_for_update().values_list('id', flat=True))

            orders_demoted = Order.objects.filter(status=OrderStatus.FULFILLED).update(status=OrderStatus.OPEN)
            dispatches_cleared = Order.objects.filter(dispatch_note_id__isnull=False).count()
            Order.objects.update(
                fulfillment_status=FulfillmentStatus.NOT_FULFILLED,
                dispatch_note_id=None,
                dispatch_status=None,
                dispatch_error=None,
                dispatch_payload=None,
                dispatch_quantities_source=None,
                dispatch_attempt_id=None,
                dispatched_at=None,
                updated_at=timezone.now(),
            )

            scans_deleted = PickScan.objects.count()
            PickScan.objects.all().delete()
            picks_deleted, _ = Pick.objects.all().delete()
            items_reset = OrderItem.objects.filter(quantity_picked__gt=0).update(quantity_picked=0)

            counts = {
                'orders': order_count,
                'orders_demoted': orders_demoted,
                'dispatches_cleared': dispatches_cleared,
                'scans_deleted': scans_deleted,
                'picks_deleted': picks_deleted,
                'items_reset': items_reset,
            }
            AuditLog.log_bulk_change('Order', 'reset_all', user, notes="All orders reset", metadata=counts)

        logger.warning(
            f"All orders reset by {user}: {orders_demoted} demoted, {dispatches_cleared} dispatches cleared, "
            f"{scans_deleted} scans deleted"
        )
        return {'success': True, **counts, 'message': f"{order_count} orders reset"}

    @staticmethod
    def clear_fulfilled_dispatches(user=None) -> Dict[str, Any]:
        """
        Clear the committed delivery notes of all fulfilled orders.

        Picking is left intact so the orders can be dispatched again.
        """
        with transaction.atomic():
            orders = Order.objects.select_for_update().filter(
                status=OrderStatus.FULFILLED,
                dispatch_status=DispatchStatus.COMMITTED,
            )
            cleared = list(orders.values_list('order_number', 'dispatch_note_id'))
            orders.update(**CLEARED_DISPATCH_FIELDS, updated_at=timezone.now())

            AuditLog.log_bulk_change(
                'Order', 'clear_dispatches', user,
                notes=f"{len(cleared)} delivery notes cleared",
                metadata={'cleared': [{'order_number': n, 'note_id': note} for n, note in cleared]},
            )

        logger.info(f"Cleared {len(cleared)} delivery notes of fulfilled orders")
        return {
            'success': True,
            'orders_cleared': len(cleared),
            'cleared_note_ids': [note for _, note in cleared],
            'message': f"{len(cleared)} delivery notes cleared",
        }
