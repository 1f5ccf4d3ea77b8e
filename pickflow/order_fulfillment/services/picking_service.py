"""
Picking Service for Order Fulfillment.

Records barcode scans against order items. Scans are the source of truth;
``OrderItem.quantity_picked`` is rebuilt from them after every accepted scan.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Any, List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Sum

from products.models import ProductPackage

from ..models import (
    Order, OrderItem, OrderStatus, FulfillmentStatus,
    Pick, PickStatus, PickScan, AuditLog
)
from ..exceptions import (
    BusinessException, ItemNotFoundException, PickNotFoundException,
    BarcodeMismatchException, OverPickException
)
from .fulfillment_status import FulfillmentStatusEngine
from .order_service import get_order
from .workflow import validate_pick_workflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanUnit:
    """A barcode group that counts toward an item, and how many scans make one unit."""
    package: Optional[ProductPackage]
    barcodes: frozenset
    per_set: int = 1


def scan_units_for(item: OrderItem) -> List[ScanUnit]:
    """
    Barcode groups that must be scanned to pick one unit of the item.

    A line resolved to a single package only takes that package. A product
    shipped in packages needs each package scanned ``package.quantity``
    times per unit. Any other product takes its own barcode or SKU.
    Unresolved items have no scan units.
    """
    if item.product_id is None:
        return []

    if item.package_id is not None:
        return [ScanUnit(item.package, frozenset([item.package.barcode]), 1)]

    packages = list(item.product.packages.order_by('id'))
    if packages:
        return [ScanUnit(pkg, frozenset([pkg.barcode]), max(pkg.quantity, 1)) for pkg in packages]

    barcodes = frozenset(code for code in (item.product.barcode, item.product.sku) if code)
    return [ScanUnit(None, barcodes, 1)]


def _scanned_total(item: OrderItem, unit: ScanUnit) -> int:
    scans = PickScan.objects.filter(order_item=item)
    if unit.package is None:
        scans = scans.filter(package__isnull=True)
    else:
        scans = scans.filter(package=unit.package)
    return scans.aggregate(total=Sum('quantity'))['total'] or 0


class PickingService:
    """Service class for picking operations."""

    @staticmethod
    def replay_picked_quantity(item: OrderItem, save: bool = True) -> int:
        """
        Rebuild ``quantity_picked`` for an item from its scans.

        The picked quantity is the number of complete units across all scan
        units, capped at the requested quantity.
        """
        units = scan_units_for(item)
        if units:
            picked = min(_scanned_total(item, unit) // unit.per_set for unit in units)
        else:
            picked = 0
        picked = min(picked, item.quantity_requested)

        if item.quantity_picked != picked:
            item.quantity_picked = picked
            if save:
                item.save(update_fields=['quantity_picked'])
        return picked

    @staticmethod
    def _ensure_no_pending_dispatch(order: Order) -> None:
        if order.is_dispatch_pending:
            raise BusinessException(
                f"Order {order.order_number} is being dispatched; scans are blocked until it completes",
                "DISPATCH_IN_PROGRESS"
            )

    @staticmethod
    def _open_pick(order: Order, picker=None, pick_id=None) -> Pick:
        """Return the pick session to record into, creating one if needed. Order must be locked."""
        if pick_id is not None:
            try:
                pick = order.picks.get(id=pick_id)
            except (Pick.DoesNotExist, ValueError, DjangoValidationError):
                raise PickNotFoundException(pick_id)
        else:
            pick = order.picks.exclude(status=PickStatus.COMPLETED).order_by('-started_at').first()
            if pick is None:
                pick = Pick.objects.create(order=order, picker=picker)
                AuditLog.log_change(pick, 'created', picker, notes=f"Picking started for {order.order_number}")
                return pick

        if pick.status == PickStatus.PARTIAL:
            validate_pick_workflow(pick, PickStatus.ACTIVE)
            pick.status = PickStatus.ACTIVE
            pick.save(update_fields=['status', 'updated_at'])
        elif not pick.is_open:
            raise BusinessException(f"Pick {pick.id} is already completed", "PICK_COMPLETED")
        return pick

    @staticmethod
    def start_pick(order_id, picker=None) -> Dict[str, Any]:
        """
        Open a picking session for an order, or resume the open one.

        Returns:
            Dict with the pick and whether it was newly created
        """
        with transaction.atomic():
            order = get_order(order_id, for_update=True)
            PickingService._ensure_no_pending_dispatch(order)

            if FulfillmentStatusEngine.compute(order) == FulfillmentStatus.FULFILLED:
                raise BusinessException(
                    f"Order {order.order_number} is already fully picked",
                    "ORDER_ALREADY_PICKED"
                )

            existing = order.picks.exclude(status=PickStatus.COMPLETED).exists()
            pick = PickingService._open_pick(order, picker)

            logger.info(f"Pick {pick.id} {'resumed' if existing else 'started'} for order {order.order_number}")
            return {
                'success': True,
                'pick': pick,
                'created': not existing,
                'message': f"Picking {'resumed' if existing else 'started'} for order {order.order_number}",
            }

    @staticmethod
    def record_scan(order_item_id, barcode: str, pick_id=None, scanned_by=None) -> Dict[str, Any]:
        """
        Record one barcode scan against an order item.

        The scan is appended first, then the item's picked quantity is
        replayed from all its scans and the order's fulfillment status is
        refreshed. The order row stays locked for the whole operation.

        Args:
            order_item_id: OrderItem UUID
            barcode: Scanned barcode
            pick_id: Pick session to record into; the open session is used when omitted
            scanned_by: User scanning

        Returns:
            Dict with ``accepted``, ``picked_quantity`` and the order's fulfillment status

        Raises:
            ItemNotFoundException: If the order item does not exist
            BarcodeMismatchException: If the barcode does not belong to the item
            OverPickException: If the scan would exceed the requested quantity
        """
        try:
            order_id = OrderItem.objects.values_list('order_id', flat=True).get(id=order_item_id)
        except (OrderItem.DoesNotExist, ValueError, DjangoValidationError):
            raise ItemNotFoundException(order_item_id)

        with transaction.atomic():
            order = Order.objects.select_for_update().get(id=order_id)
            item = OrderItem.objects.select_for_update().get(id=order_item_id)
            PickingService._ensure_no_pending_dispatch(order)

            units = scan_units_for(item)
            unit = next((u for u in units if barcode in u.barcodes), None)
            if unit is None:
                expected = sorted(code for u in units for code in u.barcodes)
                logger.info(f"Barcode {barcode} rejected for item {item.id} of order {order.order_number}")
                raise BarcodeMismatchException(barcode, item.id, expected)

            scanned = _scanned_total(item, unit)
            if scanned + 1 > unit.per_set * item.quantity_requested:
                raise OverPickException(item.id, item.quantity_requested, item.quantity_picked, barcode)

            pick = PickingService._open_pick(order, scanned_by, pick_id)

            scan = PickScan.objects.create(
                pick=pick,
                order_item=item,
                package=unit.package,
                barcode=barcode,
                quantity=1,
                scanned_by=scanned_by,
            )

            old_picked = item.quantity_picked
            picked = PickingService.replay_picked_quantity(item)
            fulfillment_status = FulfillmentStatusEngine.refresh(order, scanned_by)

            if picked != old_picked:
                AuditLog.log_change(
                    entity=item,
                    action='quantity_picked',
                    user=scanned_by,
                    old_values={'quantity_picked': old_picked},
                    new_values={'quantity_picked': picked},
                    metadata={'pick_id': str(pick.id), 'barcode': barcode},
                )

            if fulfillment_status == FulfillmentStatus.FULFILLED:
                validate_pick_workflow(pick, PickStatus.COMPLETED)
                pick.complete()
                AuditLog.log_status_change(pick, PickStatus.ACTIVE, PickStatus.COMPLETED, scanned_by)
                logger.info(f"Pick {pick.id} completed, order {order.order_number} fully picked")

            return {
                'success': True,
                'accepted': True,
                'scan_id': str(scan.id),
                'pick_id': str(pick.id),
                'pick_status': pick.status,
                'order_item_id': str(item.id),
                'picked_quantity': picked,
                'quantity_requested': item.quantity_requested,
                'fulfillment_status': fulfillment_status,
                'order_status': order.status,
                'message': f"Scanned {barcode}: {picked}/{item.quantity_requested} picked",
            }

    @staticmethod
    def mark_partial(pick_id, user=None) -> Pick:
        """Leave a picking session unfinished so it can be resumed later."""
        try:
            order_id = Pick.objects.values_list('order_id', flat=True).get(id=pick_id)
        except (Pick.DoesNotExist, ValueError, DjangoValidationError):
            raise PickNotFoundException(pick_id)

        with transaction.atomic():
            Order.objects.select_for_update().get(id=order_id)
            pick = Pick.objects.get(id=pick_id)

            validate_pick_workflow(pick, PickStatus.PARTIAL)
            old_status = pick.status
            pick.mark_partial()

            AuditLog.log_status_change(pick, old_status, pick.status, user)
            logger.info(f"Pick {pick.id} left partial by {user}")
            return pick

    @staticmethod
    def reset_pick(pick_id, user=None) -> Dict[str, Any]:
        """
        Undo one picking session.

        Deletes the session and its scans, replays the affected items and
        refreshes the order. A fulfilled order that is no longer fully
        picked goes back to open. Refused while the order has an active
        delivery note.
        """
        try:
            order_id = Pick.objects.values_list('order_id', flat=True).get(id=pick_id)
        except (Pick.DoesNotExist, ValueError, DjangoValidationError):
            raise PickNotFoundException(pick_id)

        with transaction.atomic():
            order = Order.objects.select_for_update().get(id=order_id)
            pick = Pick.objects.get(id=pick_id)

            if order.has_active_dispatch:
                raise BusinessException(
                    f"Order {order.order_number} has a {order.dispatch_status} delivery note; clear it first",
                    "DISPATCH_ACTIVE"
                )

            item_ids = set(pick.scans.values_list('order_item_id', flat=True))
            scans_deleted = pick.scans.count()
            AuditLog.log_change(
                pick, 'deleted', user,
                old_values={'status': pick.status, 'scans': scans_deleted},
                notes=f"Pick reset for order {order.order_number}",
            )
            pick.delete()

            for item in OrderItem.objects.select_for_update().filter(id__in=item_ids):
                PickingService.replay_picked_quantity(item)

            fulfillment_status = FulfillmentStatusEngine.refresh(order, user)
            if order.status == OrderStatus.FULFILLED and fulfillment_status != FulfillmentStatus.FULFILLED:
                AuditLog.log_status_change(order, order.status, OrderStatus.OPEN, user, notes="Pick reset")
                order.status = OrderStatus.OPEN
                order.save(update_fields=['status', 'updated_at'])

            logger.info(f"Pick {pick_id} reset: {scans_deleted} scans deleted from order {order.order_number}")
            return {
                'success': True,
                'scans_deleted': scans_deleted,
                'items_replayed': len(item_ids),
                'fulfillment_status': fulfillment_status,
                'order_status': order.status,
                'message': f"Pick reset, {scans_deleted} scans removed",
            }

    @staticmethod
    def get_pick_summary(pick_id) -> Dict[str, Any]:
        """Scan counts of a session per order item."""
        try:
            pick = Pick.objects.select_related('order').get(id=pick_id)
        except (Pick.DoesNotExist, ValueError, DjangoValidationError):
            raise PickNotFoundException(pick_id)

        per_item = {
            row['order_item_id']: row['total']
            for row in pick.scans.values('order_item_id').annotate(total=Sum('quantity'))
        }
        items = pick.order.items.all()
        return {
            'pick_id': str(pick.id),
            'order_number': pick.order.order_number,
            'status': pick.status,
            'started_at': pick.started_at,
            'completed_at': pick.completed_at,
            'items': [
                {
                    'order_item_id': str(item.id),
                    'external_line_id': item.external_line_id,
                    'scans_in_pick': per_item.get(item.id, 0),
                    'quantity_picked': item.quantity_picked,
                    'quantity_requested': item.quantity_requested,
                }
                for item in items
            ],
        }
