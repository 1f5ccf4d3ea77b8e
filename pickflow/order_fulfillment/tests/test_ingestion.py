"""
Tests for order ingestion and the order workflow.
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase

from products.models import Product, ProductPackage

from ..exceptions import BusinessException, OrderNotFoundException, ValidationException
from ..models import AuditLog, FulfillmentStatus, Order, OrderStatus
from ..services import OrderService, PickingService


class OrderIngestionTest(TestCase):
    """Test creating and updating orders from upstream documents."""

    def setUp(self):
        self.user = get_user_model().objects.create_user(username='ingest', password='testpass123')
        self.chair = Product.objects.create(name='Chair', sku='CH-001', barcode='5901')
        self.wardrobe = Product.objects.create(name='Wardrobe', sku='WR-001')
        self.doors = ProductPackage.objects.create(product=self.wardrobe, name='Doors', barcode='PKG-WR-2')

    def document(self, **overrides):
        document = {
            'orderNumber': 'SO-1001',
            'customerRef': 'CUST-7',
            'items': [
                {'externalLineId': 'CH-001', 'quantity': 2, 'unitPrice': '19.90'},
                {'externalLineId': 'PKG-WR-2', 'quantity': 1},
            ],
        }
        document.update(overrides)
        return document

    def test_ingest_creates_order_with_resolved_items(self):
        result = OrderService.ingest_order(self.document(), self.user)

        self.assertTrue(result['success'])
        self.assertTrue(result['created'])
        self.assertEqual(result['unmatched_items'], [])

        order = result['order']
        self.assertEqual(order.status, OrderStatus.OPEN)
        self.assertEqual(order.fulfillment_status, FulfillmentStatus.NOT_FULFILLED)
        self.assertIsNone(order.dispatch_status)

        first, second = order.items.order_by('line_number')
        self.assertEqual(first.product, self.chair)
        self.assertIsNone(first.package)
        self.assertEqual(first.quantity_requested, 2)
        self.assertEqual(first.quantity_picked, 0)
        self.assertEqual(first.line_total, Decimal('39.80'))
        self.assertEqual(second.product, self.wardrobe)
        self.assertEqual(second.package, self.doors)

        self.assertTrue(AuditLog.objects.filter(entity_id=str(order.id), action='ingested').exists())

    def test_snake_case_keys_are_accepted(self):
        result = OrderService.ingest_order({
            'order_number': 'SO-2000',
            'items': [{'external_line_id': 'CH-001', 'quantity': 1}],
        })
        self.assertEqual(result['order'].items.count(), 1)

    def test_unmatched_lines_are_stored_and_reported(self):
        result = OrderService.ingest_order(self.document(items=[
            {'externalLineId': 'CH-001', 'quantity': 1},
            {'externalLineId': 'UNKNOWN', 'quantity': 4},
        ]))

        self.assertEqual(len(result['unmatched_items']), 1)
        self.assertEqual(result['unmatched_items'][0]['external_line_id'], 'UNKNOWN')

        unresolved = result['order'].items.get(external_line_id='UNKNOWN')
        self.assertIsNone(unresolved.product)
        self.assertFalse(unresolved.is_resolved)

    def test_reingest_rebuilds_items_before_picking(self):
        OrderService.ingest_order(self.document())
        result = OrderService.ingest_order(self.document(items=[{'externalLineId': 'CH-001', 'quantity': 5}]))

        self.assertFalse(result['created'])
        self.assertTrue(result['items_rebuilt'])
        self.assertEqual(Order.objects.count(), 1)
        item = result['order'].items.get()
        self.assertEqual(item.quantity_requested, 5)

    def test_reingest_keeps_items_once_scanned(self):
        order = OrderService.ingest_order(self.document())['order']
        item = order.items.get(external_line_id='CH-001')
        PickingService.record_scan(item.id, '5901')

        result = OrderService.ingest_order(self.document(items=[{'externalLineId': 'CH-001', 'quantity': 9}]))

        self.assertFalse(result['items_rebuilt'])
        self.assertEqual(order.items.count(), 2)
        item.refresh_from_db()
        self.assertEqual(item.quantity_requested, 2)
        self.assertEqual(item.quantity_picked, 1)

    def test_invalid_documents_are_rejected(self):
        with self.assertRaises(ValidationException):
            OrderService.ingest_order({'items': [{'externalLineId': 'CH-001', 'quantity': 1}]})

        with self.assertRaises(ValidationException):
            OrderService.ingest_order(self.document(items=[]))

        with self.assertRaises(ValidationException) as ctx:
            OrderService.ingest_order(self.document(items=[{'externalLineId': 'CH-001', 'quantity': 0}]))
        self.assertIn('items[0].quantity', ctx.exception.details)

        with self.assertRaises(ValidationException) as ctx:
            OrderService.ingest_order(self.document(items=[{'externalLineId': 'CH-001', 'quantity': 2.7}]))
        self.assertIn('items[0].quantity', ctx.exception.details)

        with self.assertRaises(ValidationException):
            OrderService.ingest_order(self.document(items=[{'externalLineId': 'CH-001', 'quantity': 'NaN'}]))

        self.assertFalse(Order.objects.exists())


class OrderWorkflowTest(TestCase):
    """Test approval and the administrative fulfilled override."""

    def setUp(self):
        self.user = get_user_model().objects.create_user(username='manager', password='testpass123')
        Product.objects.create(name='Chair', sku='CH-001')
        self.order = OrderService.ingest_order({
            'orderNumber': 'SO-3000',
            'items': [{'externalLineId': 'CH-001', 'quantity': 2}],
        })['order']

    def test_approve_open_order(self):
        order = OrderService.approve_order(self.order.id, self.user)
        self.assertEqual(order.status, OrderStatus.APPROVED)

        with self.assertRaises(BusinessException) as ctx:
            OrderService.approve_order(self.order.id, self.user)
        self.assertEqual(ctx.exception.code, 'INVALID_ORDER_STATUS')

    def test_mark_fulfilled_changes_status_only(self):
        order = OrderService.mark_fulfilled(self.order.id, self.user, notes='Shipped by hand')

        self.assertEqual(order.status, OrderStatus.FULFILLED)
        self.assertEqual(order.fulfillment_status, FulfillmentStatus.NOT_FULFILLED)
        self.assertEqual(OrderService.get_fulfillment_status(order.id), FulfillmentStatus.NOT_FULFILLED)

    def test_fulfilled_order_cannot_be_approved(self):
        OrderService.mark_fulfilled(self.order.id, self.user)
        with self.assertRaises(BusinessException):
            OrderService.approve_order(self.order.id, self.user)

    def test_unknown_order(self):
        with self.assertRaises(OrderNotFoundException):
            OrderService.get_order_summary('not-a-uuid')

    def test_summary_lists_items(self):
        summary = OrderService.get_order_summary(self.order.id)
        self.assertEqual(summary['order_number'], 'SO-3000')
        self.assertEqual(len(summary['items']), 1)
        self.assertEqual(summary['unresolved_items'], 0)
        self.assertFalse(summary['items'][0]['fully_picked'])


class QuantityNormalizationTest(TestCase):

    def test_integral_quantities_in_other_forms_are_accepted(self):
        Product.objects.create(name='Chair', sku='CH-001')
        order = OrderService.ingest_order({
            'orderNumber': 'SO-3100',
            'items': [
                {'externalLineId': 'CH-001', 'quantity': '3.0'},
                {'externalLineId': 'CH-001', 'quantity': 4.0},
            ],
        })['order']

        self.assertEqual(
            list(order.items.order_by('line_number').values_list('quantity_requested', flat=True)), [3, 4]
        )
