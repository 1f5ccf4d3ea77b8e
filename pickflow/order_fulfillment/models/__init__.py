"""
Order Fulfillment Models
"""

from .order import Order, OrderStatus, FulfillmentStatus, DispatchStatus, QuantitiesSource
from .order_item import OrderItem
from .picking import Pick, PickStatus, PickScan
from .audit import AuditLog

__all__ = [
    # Order models
    'Order', 'OrderStatus', 'FulfillmentStatus', 'DispatchStatus', 'QuantitiesSource',
    'OrderItem',

    # Picking models
    'Pick', 'PickStatus', 'PickScan',

    # Audit
    'AuditLog',
]
