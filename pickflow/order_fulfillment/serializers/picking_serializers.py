"""
Picking serializers for Order Fulfillment.
"""

from rest_framework import serializers

from ..models import Pick, PickScan


class PickScanSerializer(serializers.ModelSerializer):
    """Serializer for PickScan events."""

    external_line_id = serializers.CharField(source='order_item.external_line_id', read_only=True)

    class Meta:
        model = PickScan
        fields = [
            'id', 'order_item', 'external_line_id', 'package', 'barcode',
            'quantity', 'scanned_by', 'scanned_at'
        ]


class PickListSerializer(serializers.ModelSerializer):
    """Serializer for pick listing."""

    order_number = serializers.CharField(source='order.order_number', read_only=True)
    picker_name = serializers.CharField(source='picker.username', read_only=True, default=None)
    scan_count = serializers.IntegerField(source='scans.count', read_only=True)

    class Meta:
        model = Pick
        fields = [
            'id', 'order', 'order_number', 'status', 'picker_name',
            'scan_count', 'started_at', 'completed_at'
        ]


class PickDetailSerializer(PickListSerializer):
    """Serializer for pick details with its scans."""

    scans = PickScanSerializer(many=True, read_only=True)

    class Meta(PickListSerializer.Meta):
        fields = PickListSerializer.Meta.fields + ['scans']


class StartPickSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()


class ScanSerializer(serializers.Serializer):
    """A barcode scanned against one order item."""

    order_item_id = serializers.UUIDField()
    barcode = serializers.CharField(max_length=100, trim_whitespace=False)
