"""
Picking models: picking sessions and the scan events recorded in them.
"""

import uuid
from django.db import models
from django.conf import settings
from django.utils import timezone


class PickStatus(models.TextChoices):
    """Picking session status."""
    ACTIVE = 'active', 'Active'
    PARTIAL = 'partial', 'Partial'
    COMPLETED = 'completed', 'Completed'


class Pick(models.Model):
    """
    A picking session for one order.

    Groups the scans a picker records while walking the order; a session
    left unfinished is marked partial and the order can be picked again.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        'Order',
        on_delete=models.CASCADE,
        related_name='picks',
        help_text="Order being picked"
    )
    status = models.CharField(
        max_length=20,
        choices=PickStatus.choices,
        default=PickStatus.ACTIVE,
        help_text="Current session status"
    )
    picker = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='picks',
        help_text="Warehouse staff running the session"
    )

    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-started_at']
        indexes = [
            models.Index(fields=['order', 'status'], name='idx_pick_order_status'),
        ]

    def __str__(self):
        return f"Pick {self.id} - {self.order.order_number} ({self.status})"

    @property
    def is_open(self):
        return self.status != PickStatus.COMPLETED

    def complete(self):
        """Mark the session as completed."""
        if self.status != PickStatus.COMPLETED:
            self.status = PickStatus.COMPLETED
            self.completed_at = timezone.now()
            self.save(update_fields=['status', 'completed_at', 'updated_at'])

    def mark_partial(self):
        """Leave the session unfinished."""
        if self.status == PickStatus.ACTIVE:
            self.status = PickStatus.PARTIAL
            self.save(update_fields=['status', 'updated_at'])


class PickScan(models.Model):
    """
    One barcode scan accepted against an order item.

    Scans are append-only; they are only ever removed wholesale by a reset.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    pick = models.ForeignKey(
        Pick,
        on_delete=models.CASCADE,
        related_name='scans',
        help_text="Picking session the scan belongs to"
    )
    order_item = models.ForeignKey(
        'OrderItem',
        on_delete=models.CASCADE,
        related_name='scans',
        help_text="Order item the scan counts toward"
    )
    package = models.ForeignKey(
        'products.ProductPackage',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='scans',
        help_text="Package scanned, for multi-package products"
    )
    barcode = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField(
        default=1,
        help_text="Units recorded by this scan"
    )
    scanned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='pick_scans'
    )
    scanned_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['scanned_at']
        indexes = [
            models.Index(fields=['order_item', 'package'], name='idx_scan_item_package'),
            models.Index(fields=['pick', 'scanned_at'], name='idx_scan_pick_time'),
        ]

    def __str__(self):
        return f"Scan {self.barcode} x{self.quantity} at {self.scanned_at}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Pick scans are immutable once recorded")
        super().save(*args, **kwargs)
