"""
Tests for administrative reset operations.
"""

from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command
from django.test import TestCase

from products.models import Product

from ..adapters import switch_to_mock_adapter
from ..exceptions import BusinessException
from ..models import (
    AuditLog, DispatchStatus, FulfillmentStatus, Order, OrderItem, OrderStatus, Pick, PickScan
)
from ..services import DispatchService, OrderService, PickingService, ResetService


class ResetTestCase(TestCase):

    def setUp(self):
        self.user = get_user_model().objects.create_user(username='admin', password='testpass123')
        self.erp = switch_to_mock_adapter()
        Product.objects.create(name='Lamp', sku='LM-001', barcode='4000001')
        Product.objects.create(name='Shade', sku='SH-001', barcode='4000002')

        self.dispatched = self.ingest('SO-8001', 'LM-001', 2)
        self.pick(self.dispatched, '4000001', 2)
        DispatchService.create_dispatch(self.dispatched.id, self.user)

        self.partial = self.ingest('SO-8002', 'SH-001', 3)
        self.pick(self.partial, '4000002', 1)

        self.untouched = self.ingest('SO-8003', 'LM-001', 1)

    def ingest(self, order_number, sku, quantity):
        return OrderService.ingest_order({
            'orderNumber': order_number,
            'items': [{'externalLineId': sku, 'quantity': quantity}],
        })['order']

    def pick(self, order, barcode, times):
        item = order.items.get()
        for _ in range(times):
            PickingService.record_scan(item.id, barcode, scanned_by=self.user)


class ResetAllOrdersTest(ResetTestCase):

    def test_reset_all_orders(self):
        result = ResetService.reset_all_orders(self.user)

        self.assertEqual(result['orders'], 3)
        self.assertEqual(result['orders_demoted'], 1)
        self.assertEqual(result['dispatches_cleared'], 1)
        self.assertEqual(result['scans_deleted'], 3)
        self.assertEqual(result['items_reset'], 2)

        self.assertFalse(PickScan.objects.exists())
        self.assertFalse(Pick.objects.exists())
        self.assertFalse(OrderItem.objects.filter(quantity_picked__gt=0).exists())

        for order in Order.objects.all():
            self.assertEqual(order.status, OrderStatus.OPEN)
            self.assertEqual(order.fulfillment_status, FulfillmentStatus.NOT_FULFILLED)
            self.assertIsNone(order.dispatch_status)
            self.assertIsNone(order.dispatch_note_id)
            self.assertIsNone(order.dispatch_payload)
            self.assertIsNone(order.dispatch_quantities_source)

        self.assertTrue(AuditLog.objects.filter(entity_type='Order', action='reset_all').exists())

    def test_reset_all_is_atomic(self):
        with mock.patch.object(AuditLog, 'log_bulk_change', side_effect=RuntimeError('audit down')):
            with self.assertRaises(RuntimeError):
                ResetService.reset_all_orders(self.user)

        dispatched = Order.objects.get(id=self.dispatched.id)
        self.assertEqual(dispatched.status, OrderStatus.FULFILLED)
        self.assertEqual(dispatched.dispatch_status, DispatchStatus.COMMITTED)
        self.assertEqual(dispatched.dispatch_note_id, 'DN-000001')
        self.assertEqual(PickScan.objects.count(), 3)
        self.assertEqual(self.partial.items.get().quantity_picked, 1)

    def test_orders_can_be_picked_and_dispatched_again(self):
        ResetService.reset_all_orders(self.user)

        self.pick(self.dispatched, '4000001', 2)
        result = DispatchService.create_dispatch(self.dispatched.id, self.user)
        self.assertEqual(result['note_id'], 'DN-000002')


class ResetOrderTest(ResetTestCase):

    def test_reset_dispatched_order(self):
        result = ResetService.reset_order(self.dispatched.id, self.user)

        self.assertEqual(result['scans_deleted'], 2)
        self.assertEqual(result['items_reset'], 1)

        order = Order.objects.get(id=self.dispatched.id)
        self.assertEqual(order.status, OrderStatus.OPEN)
        self.assertEqual(order.fulfillment_status, FulfillmentStatus.NOT_FULFILLED)
        self.assertEqual(order.dispatch_status, DispatchStatus.CLEARED)
        self.assertIsNone(order.dispatch_note_id)

        # Other orders keep their picking.
        self.assertEqual(self.partial.items.get().quantity_picked, 1)

    def test_reset_refused_while_dispatch_pending(self):
        Order.objects.filter(id=self.untouched.id).update(dispatch_status=DispatchStatus.PENDING)

        with self.assertRaises(BusinessException) as ctx:
            ResetService.reset_order(self.untouched.id, self.user)
        self.assertEqual(ctx.exception.code, 'DISPATCH_IN_PROGRESS')


class ClearFulfilledDispatchesTest(ResetTestCase):

    def test_clear_fulfilled_dispatches_keeps_picking(self):
        result = ResetService.clear_fulfilled_dispatches(self.user)

        self.assertEqual(result['orders_cleared'], 1)
        self.assertEqual(result['cleared_note_ids'], ['DN-000001'])

        order = Order.objects.get(id=self.dispatched.id)
        self.assertEqual(order.dispatch_status, DispatchStatus.CLEARED)
        self.assertIsNone(order.dispatch_note_id)
        self.assertEqual(order.status, OrderStatus.FULFILLED)
        self.assertEqual(order.items.get().quantity_picked, 2)


class ResetCommandsTest(ResetTestCase):

    def test_reset_orders_command(self):
        out = StringIO()
        call_command('reset_orders', '--yes', stdout=out)

        self.assertIn('3 orders reset', out.getvalue())
        self.assertFalse(PickScan.objects.exists())

    def test_reset_single_order_command(self):
        call_command('reset_orders', '--order', 'SO-8002', stdout=StringIO())
        self.assertEqual(self.partial.items.get().quantity_picked, 0)
        self.assertEqual(self.dispatched.items.get().quantity_picked, 2)

        with self.assertRaises(CommandError):
            call_command('reset_orders', '--order', 'SO-0000', stdout=StringIO())

    def test_clear_dispatches_command(self):
        out = StringIO()
        call_command('clear_dispatches', stdout=out)

        self.assertIn('DN-000001', out.getvalue())
        self.assertEqual(Order.objects.get(id=self.dispatched.id).dispatch_status, DispatchStatus.CLEARED)

        with self.assertRaises(CommandError):
            call_command('clear_dispatches', 'SO-8003', stdout=StringIO(), stderr=StringIO())
