"""
OrderItem model for warehouse fulfillment.
"""

import uuid
from decimal import Decimal
from django.db import models


class OrderItem(models.Model):
    """
    A line of an order, resolved against the catalog when possible.

    ``quantity_picked`` is a materialized count; the pick scans recorded
    against the item are authoritative and it can always be rebuilt from them.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        'Order',
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Order this item belongs to"
    )
    line_number = models.PositiveIntegerField(
        help_text="Position of the line on the upstream order"
    )
    external_line_id = models.CharField(
        max_length=100,
        help_text="Stock code, ERP code or package barcode sent by the upstream system"
    )

    # Catalog resolution; both stay NULL for unmatched lines
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='order_items',
        help_text="Resolved catalog product"
    )
    package = models.ForeignKey(
        'products.ProductPackage',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='order_items',
        help_text="Resolved package when the line names one package of a product"
    )
    product_name = models.CharField(
        max_length=255,
        blank=True,
        help_text="Product name at time of order"
    )

    quantity_requested = models.PositiveIntegerField(
        help_text="Quantity ordered by the customer"
    )
    quantity_picked = models.PositiveIntegerField(
        default=0,
        help_text="Quantity picked, rebuilt from scans"
    )

    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Price per unit"
    )
    line_total = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="quantity_requested * unit_price"
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional item-specific metadata"
    )

    class Meta:
        ordering = ['order', 'line_number']
        indexes = [
            models.Index(fields=['order', 'line_number'], name='idx_item_order_line'),
            models.Index(fields=['external_line_id'], name='idx_item_external_id'),
        ]
        constraints = [
            models.UniqueConstraint(fields=['order', 'line_number'], name='uniq_item_order_line'),
            models.CheckConstraint(
                condition=models.Q(quantity_picked__lte=models.F('quantity_requested')),
                name='item_picked_lte_requested',
            ),
        ]

    def __str__(self):
        return f"{self.external_line_id} - {self.quantity_picked}/{self.quantity_requested}"

    def save(self, *args, **kwargs):
        """Override save to calculate the line total."""
        self.line_total = Decimal(self.quantity_requested) * Decimal(self.unit_price)
        super().save(*args, **kwargs)

    @property
    def is_resolved(self):
        return self.product_id is not None

    @property
    def remaining_to_pick(self):
        return self.quantity_requested - self.quantity_picked

    @property
    def is_fully_picked(self):
        return self.quantity_picked >= self.quantity_requested

    @property
    def dispatch_code(self):
        """Stock code for the ERP line, falling back to the upstream identifier."""
        if self.product is not None:
            return self.product.dispatch_code
        return self.external_line_id
