"""
Order Service for Order Fulfillment.

Handles order ingestion from the upstream storefront, approval and the
administrative fulfilled override.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Any, List

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from products.services.catalog_resolver import CatalogResolver

from ..models import Order, OrderItem, OrderStatus, PickScan, AuditLog
from ..exceptions import BusinessException, OrderNotFoundException, ValidationException
from .fulfillment_status import FulfillmentStatusEngine
from .workflow import validate_order_workflow

logger = logging.getLogger(__name__)


def get_order(order_id, for_update: bool = False) -> Order:
    """
    Fetch an order by id, optionally locking its row.

    Raises:
        OrderNotFoundException: If the id is malformed or unknown
    """
    queryset = Order.objects.select_for_update() if for_update else Order.objects.all()
    try:
        return queryset.get(id=order_id)
    except (Order.DoesNotExist, ValueError, DjangoValidationError):
        raise OrderNotFoundException(order_id)


def _first(data: Dict[str, Any], *keys, default=None):
    for key in keys:
        if data.get(key) not in (None, ""):
            return data[key]
    return default


def normalize_order_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize an upstream order document.

    Accepts camelCase (``orderNumber``, ``externalLineId``) or snake_case keys.

    Raises:
        ValidationException: If the order number, items or quantities are invalid
    """
    order_number = _first(document, 'orderNumber', 'order_number')
    if order_number is None:
        raise ValidationException("Order number is required", {'order_number': 'required'})

    items = document.get('items') or []
    if not items:
        raise ValidationException("Order must contain at least one item", {'items': 'required'})

    field_errors = {}
    lines = []
    for index, item in enumerate(items):
        external_line_id = _first(item, 'externalLineId', 'external_line_id', 'sku')
        if external_line_id is None:
            field_errors[f'items[{index}].external_line_id'] = 'required'
            continue

        try:
            quantity = Decimal(str(_first(item, 'quantity', default=0)))
        except InvalidOperation:
            quantity = Decimal(0)
        if not quantity.is_finite() or quantity <= 0 or quantity != quantity.to_integral_value():
            field_errors[f'items[{index}].quantity'] = 'must be a positive integer'
            continue
        quantity = int(quantity)

        try:
            unit_price = Decimal(str(_first(item, 'unitPrice', 'unit_price', default='0')))
        except InvalidOperation:
            field_errors[f'items[{index}].unit_price'] = 'must be a decimal number'
            continue

        lines.append({
            'line_number': index + 1,
            'external_line_id': str(external_line_id),
            'quantity': quantity,
            'unit_price': unit_price,
            'name': _first(item, 'name', 'productName', 'product_name', default=''),
        })

    if field_errors:
        raise ValidationException(f"Order {order_number} has invalid items", field_errors)

    return {
        'order_number': str(order_number),
        'customer_ref': str(_first(document, 'customerRef', 'customer_ref', default='')),
        'lines': lines,
        'metadata': document.get('metadata') or {},
    }


class OrderService:
    """Service class for order operations."""

    @staticmethod
    def ingest_order(document: Dict[str, Any], user=None) -> Dict[str, Any]:
        """
        Create or update an order from a normalized upstream document.

        Lines are resolved against the catalog; unmatched lines are stored
        with no product and reported back instead of failing the order.
        Items of an existing order are only rebuilt while nothing has been
        scanned against it and no delivery note is active.

        Args:
            document: ``{orderNumber, customerRef, items: [{externalLineId, quantity, unitPrice}]}``
            user: User performing the ingestion

        Returns:
            Dict with the order, creation flags and ``unmatched_items``

        Raises:
            ValidationException: If the document is malformed
        """
        data = normalize_order_document(document)
        resolution = CatalogResolver.resolve_lines(data['lines'])

        with transaction.atomic():
            order, created = Order.objects.select_for_update().get_or_create(
                order_number=data['order_number'],
                defaults={
                    'customer_ref': data['customer_ref'],
                    'metadata': data['metadata'],
                    'created_by': user,
                },
            )

            if not created:
                order.customer_ref = data['customer_ref']
                order.metadata = {**(order.metadata or {}), **data['metadata']}
                order.save(update_fields=['customer_ref', 'metadata', 'updated_at'])

            has_scans = PickScan.objects.filter(order_item__order=order).exists()
            items_rebuilt = created or not (has_scans or order.has_active_dispatch)

            if items_rebuilt:
                if not created:
                    order.items.all().delete()
                OrderService._create_items(order, resolution.lines)
                FulfillmentStatusEngine.refresh(order, user)
            else:
                logger.warning(
                    f"Order {order.order_number} already has picking or dispatch activity; items left unchanged"
                )

            AuditLog.log_change(
                entity=order,
                action='ingested' if created else 'reingested',
                user=user,
                new_values={
                    'customer_ref': order.customer_ref,
                    'items': len(resolution.lines),
                    'items_rebuilt': items_rebuilt,
                },
                notes=f"{len(resolution.unmatched)} unmatched items",
                metadata={'unmatched_items': resolution.unmatched},
            )

        if resolution.unmatched:
            logger.warning(
                f"Order {order.order_number} ingested with {len(resolution.unmatched)} unmatched items"
            )
        logger.info(f"Order {order.order_number} {'created' if created else 'updated'}")

        return {
            'success': True,
            'order': order,
            'created': created,
            'items_rebuilt': items_rebuilt,
            'unmatched_items': resolution.unmatched,
            'message': (
                f"Order {order.order_number} ingested with {len(resolution.lines)} items, "
                f"{len(resolution.unmatched)} unmatched"
            ),
        }

    @staticmethod
    def _create_items(order: Order, lines: List[Dict[str, Any]]) -> None:
        for line in lines:
            product = line['product']
            OrderItem.objects.create(
                order=order,
                line_number=line['line_number'],
                external_line_id=line['external_line_id'],
                product=product,
                package=line['package'],
                product_name=line['name'] or (product.name if product else ''),
                quantity_requested=line['quantity'],
                unit_price=line['unit_price'],
                metadata={'matched_on': line['matched_on']} if line['matched_on'] else {},
            )

    @staticmethod
    def approve_order(order_id, approved_by=None) -> Order:
        """
        Approve an open order for picking.

        Raises:
            BusinessException: If the order is not open
        """
        with transaction.atomic():
            order = get_order(order_id, for_update=True)

            if order.status != OrderStatus.OPEN:
                raise BusinessException(
                    f"Order {order.order_number} cannot be approved from status {order.status}",
                    "INVALID_ORDER_STATUS"
                )

            validate_order_workflow(order, OrderStatus.APPROVED)

            old_status = order.status
            order.status = OrderStatus.APPROVED
            order.save(update_fields=['status', 'updated_at'])

            AuditLog.log_status_change(order, old_status, OrderStatus.APPROVED, approved_by)

            logger.info(f"Order {order.order_number} approved by {approved_by}")
            return order

    @staticmethod
    def mark_fulfilled(order_id, user=None, notes: str = "") -> Order:
        """
        Administrative override promoting an order to fulfilled.

        Only the coarse status changes; ``fulfillment_status`` keeps
        reflecting the items.
        """
        with transaction.atomic():
            order = get_order(order_id, for_update=True)

            if order.status == OrderStatus.FULFILLED:
                return order

            validate_order_workflow(order, OrderStatus.FULFILLED)

            old_status = order.status
            order.status = OrderStatus.FULFILLED
            order.save(update_fields=['status', 'updated_at'])

            AuditLog.log_status_change(
                order, old_status, OrderStatus.FULFILLED, user,
                notes=notes or "Administrative override"
            )

            logger.warning(
                f"Order {order.order_number} forced to fulfilled by {user} "
                f"(fulfillment status {order.fulfillment_status})"
            )
            return order

    @staticmethod
    def get_fulfillment_status(order_id) -> str:
        """Derive the fulfillment status from the order's current items."""
        order = get_order(order_id)
        return FulfillmentStatusEngine.compute(order)

    @staticmethod
    def get_order_summary(order_id) -> Dict[str, Any]:
        """Order state with per-item progress."""
        order = get_order(order_id)
        items = list(order.items.select_related('product', 'package'))
        return {
            'order_id': str(order.id),
            'order_number': order.order_number,
            'status': order.status,
            'fulfillment_status': FulfillmentStatusEngine.compute(order),
            'dispatch_status': order.dispatch_status,
            'dispatch_note_id': order.dispatch_note_id,
            'dispatch_quantities_source': order.dispatch_quantities_source,
            'items': [
                {
                    'id': str(item.id),
                    'line_number': item.line_number,
                    'external_line_id': item.external_line_id,
                    'product_sku': item.product.sku if item.product else None,
                    'package_barcode': item.package.barcode if item.package else None,
                    'quantity_requested': item.quantity_requested,
                    'quantity_picked': item.quantity_picked,
                    'fully_picked': item.is_fully_picked,
                    'resolved': item.is_resolved,
                }
                for item in items
            ],
            'unresolved_items': sum(1 for item in items if not item.is_resolved),
        }
