"""
Tests for barcode scanning and picked quantity replay.
"""

import uuid

from django.contrib.auth import get_user_model
from django.test import TestCase

from products.models import Product, ProductPackage

from ..exceptions import (
    BarcodeMismatchException, BusinessException, ItemNotFoundException, OverPickException
)
from ..models import FulfillmentStatus, OrderStatus, PickScan, PickStatus, DispatchStatus
from ..services import OrderService, PickingService


class PickLedgerTest(TestCase):
    """Test scanning single-barcode products."""

    def setUp(self):
        self.user = get_user_model().objects.create_user(username='picker', password='testpass123')
        self.lamp = Product.objects.create(name='Lamp', sku='LM-001', barcode='4000001')
        self.order = OrderService.ingest_order({
            'orderNumber': 'SO-4000',
            'items': [{'externalLineId': 'LM-001', 'quantity': 3}],
        })['order']
        self.item = self.order.items.get()

    def scan(self, barcode='4000001'):
        return PickingService.record_scan(self.item.id, barcode, scanned_by=self.user)

    def test_scans_progress_fulfillment(self):
        statuses = [self.scan()['fulfillment_status'] for _ in range(3)]

        self.assertEqual(statuses, [
            FulfillmentStatus.PARTIALLY_FULFILLED,
            FulfillmentStatus.PARTIALLY_FULFILLED,
            FulfillmentStatus.FULFILLED,
        ])

        self.item.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.item.quantity_picked, 3)
        self.assertEqual(self.order.fulfillment_status, FulfillmentStatus.FULFILLED)
        self.assertEqual(self.order.status, OrderStatus.FULFILLED)
        self.assertEqual(PickScan.objects.filter(order_item=self.item).count(), 3)

        pick = self.order.picks.get()
        self.assertEqual(pick.status, PickStatus.COMPLETED)
        self.assertIsNotNone(pick.completed_at)

    def test_sku_scans_count_too(self):
        result = self.scan('LM-001')
        self.assertEqual(result['picked_quantity'], 1)

    def test_wrong_barcode_is_rejected_without_changes(self):
        self.scan()

        with self.assertRaises(BarcodeMismatchException) as ctx:
            self.scan('9999999')

        self.assertEqual(ctx.exception.code, 'BARCODE_MISMATCH')
        self.assertIn('4000001', ctx.exception.details['expected_barcodes'])
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_picked, 1)
        self.assertEqual(PickScan.objects.count(), 1)

    def test_barcodes_are_not_trimmed(self):
        with self.assertRaises(BarcodeMismatchException):
            self.scan(' 4000001')

    def test_over_pick_is_rejected(self):
        for _ in range(3):
            self.scan()

        with self.assertRaises(OverPickException):
            self.scan()

        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_picked, 3)
        self.assertEqual(PickScan.objects.count(), 3)

    def test_unknown_item(self):
        with self.assertRaises(ItemNotFoundException):
            PickingService.record_scan(uuid.uuid4(), '4000001')

    def test_scans_blocked_while_dispatch_pending(self):
        self.order.dispatch_status = DispatchStatus.PENDING
        self.order.save()

        with self.assertRaises(BusinessException) as ctx:
            self.scan()
        self.assertEqual(ctx.exception.code, 'DISPATCH_IN_PROGRESS')

    def test_replay_matches_scan_history(self):
        self.scan()
        self.scan()
        self.item.quantity_picked = 0
        self.item.save()

        self.assertEqual(PickingService.replay_picked_quantity(self.item), 2)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_picked, 2)


class PickSessionTest(TestCase):
    """Test pick session lifecycle."""

    def setUp(self):
        self.user = get_user_model().objects.create_user(username='picker', password='testpass123')
        Product.objects.create(name='Lamp', sku='LM-001', barcode='4000001')
        Product.objects.create(name='Shade', sku='SH-001', barcode='4000002')
        self.order = OrderService.ingest_order({
            'orderNumber': 'SO-4100',
            'items': [
                {'externalLineId': 'LM-001', 'quantity': 1},
                {'externalLineId': 'SH-001', 'quantity': 1},
            ],
        })['order']
        self.lamp_item = self.order.items.get(external_line_id='LM-001')
        self.shade_item = self.order.items.get(external_line_id='SH-001')

    def test_start_pick_resumes_open_session(self):
        first = PickingService.start_pick(self.order.id, self.user)
        second = PickingService.start_pick(self.order.id, self.user)

        self.assertTrue(first['created'])
        self.assertFalse(second['created'])
        self.assertEqual(first['pick'].id, second['pick'].id)

    def test_partial_session_is_reactivated_by_scan(self):
        pick = PickingService.start_pick(self.order.id, self.user)['pick']
        pick = PickingService.mark_partial(pick.id, self.user)
        self.assertEqual(pick.status, PickStatus.PARTIAL)

        result = PickingService.record_scan(self.lamp_item.id, '4000001', pick_id=pick.id, scanned_by=self.user)

        self.assertEqual(result['pick_id'], str(pick.id))
        self.assertEqual(result['pick_status'], PickStatus.ACTIVE)

    def test_reset_pick_demotes_fulfilled_order(self):
        PickingService.record_scan(self.lamp_item.id, '4000001', scanned_by=self.user)
        result = PickingService.record_scan(self.shade_item.id, '4000002', scanned_by=self.user)
        self.assertEqual(result['order_status'], OrderStatus.FULFILLED)

        reset = PickingService.reset_pick(result['pick_id'], self.user)

        self.assertEqual(reset['scans_deleted'], 2)
        self.assertEqual(reset['fulfillment_status'], FulfillmentStatus.NOT_FULFILLED)
        self.assertEqual(reset['order_status'], OrderStatus.OPEN)
        self.lamp_item.refresh_from_db()
        self.assertEqual(self.lamp_item.quantity_picked, 0)
        self.assertFalse(self.order.picks.exists())

    def test_reset_pick_refused_with_active_dispatch(self):
        pick = PickingService.start_pick(self.order.id, self.user)['pick']
        self.order.dispatch_status = DispatchStatus.COMMITTED
        self.order.dispatch_note_id = 'DN-000009'
        self.order.save()

        with self.assertRaises(BusinessException) as ctx:
            PickingService.reset_pick(pick.id, self.user)
        self.assertEqual(ctx.exception.code, 'DISPATCH_ACTIVE')

    def test_completed_session_takes_no_scans(self):
        pick = PickingService.start_pick(self.order.id, self.user)['pick']
        pick.complete()

        with self.assertRaises(BusinessException) as ctx:
            PickingService.record_scan(self.lamp_item.id, '4000001', pick_id=pick.id)
        self.assertEqual(ctx.exception.code, 'PICK_COMPLETED')
        self.assertFalse(PickScan.objects.exists())

    def test_start_pick_on_fully_picked_order(self):
        PickingService.record_scan(self.lamp_item.id, '4000001')
        PickingService.record_scan(self.shade_item.id, '4000002')

        with self.assertRaises(BusinessException) as ctx:
            PickingService.start_pick(self.order.id, self.user)
        self.assertEqual(ctx.exception.code, 'ORDER_ALREADY_PICKED')


class MultiPackagePickTest(TestCase):
    """Test products shipped in several packages."""

    def setUp(self):
        self.wardrobe = Product.objects.create(name='Wardrobe', sku='WR-001')
        self.frame = ProductPackage.objects.create(
            product=self.wardrobe, name='Frame', package_number=1, barcode='PKG-WR-1'
        )
        self.doors = ProductPackage.objects.create(
            product=self.wardrobe, name='Doors', package_number=2, barcode='PKG-WR-2', quantity=2
        )
        self.order = OrderService.ingest_order({
            'orderNumber': 'SO-5000',
            'items': [{'externalLineId': 'WR-001', 'quantity': 1}],
        })['order']
        self.item = self.order.items.get()

    def test_unit_counts_only_when_every_package_is_scanned(self):
        self.assertEqual(PickingService.record_scan(self.item.id, 'PKG-WR-1')['picked_quantity'], 0)
        self.assertEqual(PickingService.record_scan(self.item.id, 'PKG-WR-2')['picked_quantity'], 0)

        result = PickingService.record_scan(self.item.id, 'PKG-WR-2')

        self.assertEqual(result['picked_quantity'], 1)
        self.assertEqual(result['fulfillment_status'], FulfillmentStatus.FULFILLED)

    def test_extra_package_scan_is_over_pick(self):
        PickingService.record_scan(self.item.id, 'PKG-WR-1')

        with self.assertRaises(OverPickException):
            PickingService.record_scan(self.item.id, 'PKG-WR-1')

    def test_sku_is_not_accepted_for_packaged_product(self):
        with self.assertRaises(BarcodeMismatchException) as ctx:
            PickingService.record_scan(self.item.id, 'WR-001')
        self.assertEqual(ctx.exception.details['expected_barcodes'], ['PKG-WR-1', 'PKG-WR-2'])

    def test_line_resolved_to_package_takes_only_that_package(self):
        order = OrderService.ingest_order({
            'orderNumber': 'SO-5001',
            'items': [{'externalLineId': 'PKG-WR-2', 'quantity': 2}],
        })['order']
        item = order.items.get()

        with self.assertRaises(BarcodeMismatchException):
            PickingService.record_scan(item.id, 'PKG-WR-1')

        PickingService.record_scan(item.id, 'PKG-WR-2')
        result = PickingService.record_scan(item.id, 'PKG-WR-2')
        self.assertEqual(result['picked_quantity'], 2)


class UnresolvedItemTest(TestCase):
    """Test that unresolved lines block fulfillment."""

    def test_unresolved_item_accepts_no_scan(self):
        Product.objects.create(name='Lamp', sku='LM-001', barcode='4000001')
        order = OrderService.ingest_order({
            'orderNumber': 'SO-6000',
            'items': [
                {'externalLineId': 'LM-001', 'quantity': 1},
                {'externalLineId': 'GONE-1', 'quantity': 1},
            ],
        })['order']

        result = PickingService.record_scan(order.items.get(external_line_id='LM-001').id, '4000001')
        self.assertEqual(result['fulfillment_status'], FulfillmentStatus.PARTIALLY_FULFILLED)

        with self.assertRaises(BarcodeMismatchException):
            PickingService.record_scan(order.items.get(external_line_id='GONE-1').id, 'GONE-1')


class PickSummaryTest(TestCase):

    def test_summary_counts_scans_per_item(self):
        Product.objects.create(name='Lamp', sku='LM-001', barcode='4000001')
        order = OrderService.ingest_order({
            'orderNumber': 'SO-6100',
            'items': [{'externalLineId': 'LM-001', 'quantity': 2}],
        })['order']
        item = order.items.get()
        result = PickingService.record_scan(item.id, '4000001')

        summary = PickingService.get_pick_summary(result['pick_id'])

        self.assertEqual(summary['order_number'], 'SO-6100')
        self.assertEqual(summary['items'][0]['scans_in_pick'], 1)
        self.assertEqual(summary['items'][0]['quantity_picked'], 1)
