"""
Order model for warehouse fulfillment and ERP dispatch reconciliation.
"""

import uuid
from django.db import models
from django.conf import settings
from django.utils import timezone


class OrderStatus(models.TextChoices):
    """Coarse order lifecycle status."""
    OPEN = 'open', 'Open'
    APPROVED = 'approved', 'Approved'
    FULFILLED = 'fulfilled', 'Fulfilled'


class FulfillmentStatus(models.TextChoices):
    """Picking completeness, always derived from the order items."""
    NOT_FULFILLED = 'NOT_FULFILLED', 'Not Fulfilled'
    PARTIALLY_FULFILLED = 'PARTIALLY_FULFILLED', 'Partially Fulfilled'
    FULFILLED = 'FULFILLED', 'Fulfilled'


class DispatchStatus(models.TextChoices):
    """ERP delivery note lifecycle. NULL means never dispatched or last attempt failed."""
    PENDING = 'PENDING', 'Pending'
    COMMITTED = 'COMMITTED', 'Committed'
    CLEARED = 'CLEARED', 'Cleared'


class QuantitiesSource(models.TextChoices):
    """Which side's quantities ended up on the delivery note."""
    WAREHOUSE = 'warehouse', 'Warehouse picked quantities'
    ERP_ORDER = 'erp-order', 'ERP stored order quantities'


class Order(models.Model):
    """
    Customer order picked in the warehouse and dispatched through the ERP.

    The dispatch_* fields hold the single active ERP delivery note for the
    order together with the state of its creation.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(
        max_length=50,
        unique=True,
        help_text="Order number from the upstream storefront; also the ERP order reference"
    )
    customer_ref = models.CharField(
        max_length=255,
        blank=True,
        help_text="Customer reference from the upstream storefront"
    )

    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.OPEN,
        help_text="Order lifecycle status"
    )
    fulfillment_status = models.CharField(
        max_length=30,
        choices=FulfillmentStatus.choices,
        default=FulfillmentStatus.NOT_FULFILLED,
        help_text="Picking completeness derived from item quantities"
    )

    # ERP delivery note
    dispatch_note_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="ERP delivery note identifier"
    )
    dispatch_status = models.CharField(
        max_length=20,
        choices=DispatchStatus.choices,
        null=True,
        blank=True,
        help_text="Delivery note lifecycle state"
    )
    dispatch_error = models.TextField(
        null=True,
        blank=True,
        help_text="Last ERP error message for this order"
    )
    dispatch_payload = models.JSONField(
        null=True,
        blank=True,
        help_text="Lines submitted to the ERP and strategy details, or error details"
    )
    dispatch_quantities_source = models.CharField(
        max_length=20,
        choices=QuantitiesSource.choices,
        null=True,
        blank=True,
        help_text="Whether the note carries warehouse or ERP quantities"
    )
    dispatch_attempt_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Token of the dispatch attempt holding the PENDING marker"
    )
    dispatched_at = models.DateTimeField(null=True, blank=True)

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Raw upstream fields kept for reference"
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_orders',
        help_text="User who ingested the order"
    )

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'fulfillment_status'], name='idx_order_status'),
            models.Index(fields=['dispatch_status'], name='idx_order_dispatch_status'),
            models.Index(fields=['created_at'], name='idx_order_created'),
        ]

    def __str__(self):
        return f"Order {self.order_number} - {self.status}/{self.fulfillment_status}"

    @property
    def is_fulfilled(self):
        return self.fulfillment_status == FulfillmentStatus.FULFILLED

    @property
    def has_active_dispatch(self):
        """A PENDING or COMMITTED note blocks a new dispatch."""
        return self.dispatch_status in (DispatchStatus.PENDING, DispatchStatus.COMMITTED)

    @property
    def is_dispatch_pending(self):
        return self.dispatch_status == DispatchStatus.PENDING

    @property
    def was_ever_dispatched(self):
        return self.dispatch_status is not None or self.dispatch_note_id is not None
