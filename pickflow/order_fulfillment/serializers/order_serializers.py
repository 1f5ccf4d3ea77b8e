"""
Order serializers for Order Fulfillment.
"""

from rest_framework import serializers

from ..models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem model."""

    product_sku = serializers.CharField(source='product.sku', read_only=True, default=None)
    package_barcode = serializers.CharField(source='package.barcode', read_only=True, default=None)
    remaining_to_pick = serializers.IntegerField(read_only=True)
    is_resolved = serializers.BooleanField(read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'line_number', 'external_line_id', 'product', 'product_sku',
            'package', 'package_barcode', 'product_name', 'quantity_requested',
            'quantity_picked', 'remaining_to_pick', 'is_resolved',
            'unit_price', 'line_total', 'metadata'
        ]


class OrderListSerializer(serializers.ModelSerializer):
    """Serializer for order listing."""

    item_count = serializers.IntegerField(source='items.count', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer_ref', 'status', 'fulfillment_status',
            'dispatch_status', 'dispatch_note_id', 'item_count', 'created_at'
        ]


class OrderDetailSerializer(serializers.ModelSerializer):
    """Serializer for order details with items and dispatch state."""

    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer_ref', 'status', 'fulfillment_status',
            'dispatch_note_id', 'dispatch_status', 'dispatch_error', 'dispatch_payload',
            'dispatch_quantities_source', 'dispatched_at', 'metadata', 'items',
            'created_at', 'updated_at'
        ]


class IngestItemSerializer(serializers.Serializer):
    externalLineId = serializers.CharField(max_length=100)
    quantity = serializers.IntegerField(min_value=1)
    unitPrice = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)


class OrderIngestSerializer(serializers.Serializer):
    """Normalized order document from the upstream storefront."""

    orderNumber = serializers.CharField(max_length=50)
    customerRef = serializers.CharField(max_length=255, required=False, allow_blank=True)
    items = IngestItemSerializer(many=True, allow_empty=False)
    metadata = serializers.DictField(required=False)


class OverrideSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')
