"""
Django admin configuration for Order Fulfillment.
"""

from django.contrib import admin, messages

from .exceptions import BusinessException
from .models import Order, OrderItem, Pick, PickScan, AuditLog
from .services import DispatchService, ResetService


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ['line_number', 'external_line_id', 'product', 'package', 'quantity_requested', 'quantity_picked']
    readonly_fields = ['quantity_picked']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        'order_number', 'customer_ref', 'status', 'fulfillment_status',
        'dispatch_status', 'dispatch_note_id', 'created_at'
    ]
    list_filter = ['status', 'fulfillment_status', 'dispatch_status', 'dispatch_quantities_source']
    search_fields = ['order_number', 'customer_ref', 'dispatch_note_id']
    readonly_fields = [
        'id', 'fulfillment_status', 'dispatch_note_id', 'dispatch_status', 'dispatch_error',
        'dispatch_payload', 'dispatch_quantities_source', 'dispatch_attempt_id', 'dispatched_at',
        'created_at', 'updated_at'
    ]
    inlines = [OrderItemInline]
    actions = ['clear_dispatch', 'reset_orders']

    @admin.action(description="Clear delivery note")
    def clear_dispatch(self, request, queryset):
        for order in queryset:
            try:
                DispatchService.clear_dispatch(order.id, request.user, notes="Cleared from admin")
            except BusinessException as e:
                self.message_user(request, f"{order.order_number}: {e.message}", messages.WARNING)

    @admin.action(description="Reset picking")
    def reset_orders(self, request, queryset):
        for order in queryset:
            try:
                ResetService.reset_order(order.id, request.user)
            except BusinessException as e:
                self.message_user(request, f"{order.order_number}: {e.message}", messages.WARNING)


@admin.register(OrderItem)
class OrderItemAdmin(admin.ModelAdmin):
    list_display = ['order', 'line_number', 'external_line_id', 'product', 'quantity_requested', 'quantity_picked']
    list_filter = ['order__fulfillment_status']
    search_fields = ['external_line_id', 'product__sku', 'order__order_number']
    readonly_fields = ['id', 'quantity_picked', 'line_total']


@admin.register(Pick)
class PickAdmin(admin.ModelAdmin):
    list_display = ['id', 'order', 'picker', 'status', 'started_at', 'completed_at']
    list_filter = ['status', 'started_at']
    search_fields = ['order__order_number', 'picker__username']
    readonly_fields = ['id', 'started_at', 'completed_at', 'updated_at']


@admin.register(PickScan)
class PickScanAdmin(admin.ModelAdmin):
    list_display = ['barcode', 'order_item', 'package', 'quantity', 'scanned_by', 'scanned_at']
    search_fields = ['barcode', 'order_item__order__order_number']
    readonly_fields = ['id', 'pick', 'order_item', 'package', 'barcode', 'quantity', 'scanned_by', 'scanned_at']

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['entity_type', 'entity_id', 'action', 'user', 'timestamp']
    list_filter = ['entity_type', 'action', 'timestamp']
    search_fields = ['entity_id', 'notes']
    readonly_fields = [
        'id', 'entity_type', 'entity_id', 'action', 'user', 'old_values',
        'new_values', 'field_changes', 'timestamp', 'notes', 'metadata'
    ]
