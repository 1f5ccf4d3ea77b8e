import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("products", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "order_number",
                    models.CharField(
                        help_text="Order number from the upstream storefront; also the ERP order reference",
                        max_length=50,
                        unique=True,
                    ),
                ),
                (
                    "customer_ref",
                    models.CharField(
                        blank=True, help_text="Customer reference from the upstream storefront", max_length=255
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("open", "Open"), ("approved", "Approved"), ("fulfilled", "Fulfilled")],
                        default="open",
                        help_text="Order lifecycle status",
                        max_length=20,
                    ),
                ),
                (
                    "fulfillment_status",
                    models.CharField(
                        choices=[
                            ("NOT_FULFILLED", "Not Fulfilled"),
                            ("PARTIALLY_FULFILLED", "Partially Fulfilled"),
                            ("FULFILLED", "Fulfilled"),
                        ],
                        default="NOT_FULFILLED",
                        help_text="Picking completeness derived from item quantities",
                        max_length=30,
                    ),
                ),
                (
                    "dispatch_note_id",
                    models.CharField(
                        blank=True, help_text="ERP delivery note identifier", max_length=100, null=True
                    ),
                ),
                (
                    "dispatch_status",
                    models.CharField(
                        blank=True,
                        choices=[("PENDING", "Pending"), ("COMMITTED", "Committed"), ("CLEARED", "Cleared")],
                        help_text="Delivery note lifecycle state",
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "dispatch_error",
                    models.TextField(blank=True, help_text="Last ERP error message for this order", null=True),
                ),
                (
                    "dispatch_payload",
                    models.JSONField(
                        blank=True,
                        help_text="Lines submitted to the ERP and strategy details, or error details",
                        null=True,
                    ),
                ),
                (
                    "dispatch_quantities_source",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("warehouse", "Warehouse picked quantities"),
                            ("erp-order", "ERP stored order quantities"),
                        ],
                        help_text="Whether the note carries warehouse or ERP quantities",
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "dispatch_attempt_id",
                    models.UUIDField(
                        blank=True, help_text="Token of the dispatch attempt holding the PENDING marker", null=True
                    ),
                ),
                ("dispatched_at", models.DateTimeField(blank=True, null=True)),
                (
                    "metadata",
                    models.JSONField(blank=True, default=dict, help_text="Raw upstream fields kept for reference"),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        help_text="User who ingested the order",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "fulfillment_status"], name="idx_order_status"),
                    models.Index(fields=["dispatch_status"], name="idx_order_dispatch_status"),
                    models.Index(fields=["created_at"], name="idx_order_created"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("line_number", models.PositiveIntegerField(help_text="Position of the line on the upstream order")),
                (
                    "external_line_id",
                    models.CharField(
                        help_text="Stock code, ERP code or package barcode sent by the upstream system",
                        max_length=100,
                    ),
                ),
                (
                    "product_name",
                    models.CharField(blank=True, help_text="Product name at time of order", max_length=255),
                ),
                ("quantity_requested", models.PositiveIntegerField(help_text="Quantity ordered by the customer")),
                (
                    "quantity_picked",
                    models.PositiveIntegerField(default=0, help_text="Quantity picked, rebuilt from scans"),
                ),
                (
                    "unit_price",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0.00"), help_text="Price per unit", max_digits=12
                    ),
                ),
                (
                    "line_total",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="quantity_requested * unit_price",
                        max_digits=12,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(blank=True, default=dict, help_text="Additional item-specific metadata"),
                ),
                (
                    "order",
                    models.ForeignKey(
                        help_text="Order this item belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="order_fulfillment.order",
                    ),
                ),
                (
                    "package",
                    models.ForeignKey(
                        blank=True,
                        help_text="Resolved package when the line names one package of a product",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="products.productpackage",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        blank=True,
                        help_text="Resolved catalog product",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "ordering": ["order", "line_number"],
                "indexes": [
                    models.Index(fields=["order", "line_number"], name="idx_item_order_line"),
                    models.Index(fields=["external_line_id"], name="idx_item_external_id"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("order", "line_number"), name="uniq_item_order_line"),
                    models.CheckConstraint(
                        condition=models.Q(("quantity_picked__lte", models.F("quantity_requested"))),
                        name="item_picked_lte_requested",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Pick",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("partial", "Partial"), ("completed", "Completed")],
                        default="active",
                        help_text="Current session status",
                        max_length=20,
                    ),
                ),
                ("started_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "order",
                    models.ForeignKey(
                        help_text="Order being picked",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="picks",
                        to="order_fulfillment.order",
                    ),
                ),
                (
                    "picker",
                    models.ForeignKey(
                        blank=True,
                        help_text="Warehouse staff running the session",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="picks",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(fields=["order", "status"], name="idx_pick_order_status"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PickScan",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("barcode", models.CharField(max_length=100)),
                ("quantity", models.PositiveIntegerField(default=1, help_text="Units recorded by this scan")),
                ("scanned_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "order_item",
                    models.ForeignKey(
                        help_text="Order item the scan counts toward",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="scans",
                        to="order_fulfillment.orderitem",
                    ),
                ),
                (
                    "package",
                    models.ForeignKey(
                        blank=True,
                        help_text="Package scanned, for multi-package products",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="scans",
                        to="products.productpackage",
                    ),
                ),
                (
                    "pick",
                    models.ForeignKey(
                        help_text="Picking session the scan belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="scans",
                        to="order_fulfillment.pick",
                    ),
                ),
                (
                    "scanned_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pick_scans",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["scanned_at"],
                "indexes": [
                    models.Index(fields=["order_item", "package"], name="idx_scan_item_package"),
                    models.Index(fields=["pick", "scanned_at"], name="idx_scan_pick_time"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "entity_type",
                    models.CharField(help_text="Type of entity (Order, Pick, OrderItem, etc.)", max_length=50),
                ),
                (
                    "entity_id",
                    models.CharField(
                        blank=True,
                        help_text="Identifier of the entity; empty for bulk operations",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "action",
                    models.CharField(
                        help_text="Action performed (ingested, scan_recorded, dispatch_committed, etc.)",
                        max_length=50,
                    ),
                ),
                ("old_values", models.JSONField(blank=True, default=dict)),
                ("new_values", models.JSONField(blank=True, default=dict)),
                ("field_changes", models.JSONField(blank=True, default=dict)),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("notes", models.TextField(blank=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "user",
                    models.ForeignKey(
                        help_text="User who performed the action",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="audit_logs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-timestamp"],
                "indexes": [
                    models.Index(fields=["entity_type", "entity_id", "-timestamp"], name="idx_audit_entity"),
                    models.Index(fields=["action", "-timestamp"], name="idx_audit_action"),
                ],
            },
        ),
    ]
