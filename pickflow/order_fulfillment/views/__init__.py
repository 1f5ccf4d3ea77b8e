"""
Order Fulfillment Views
"""

from .order_views import OrderViewSet
from .picking_views import PickViewSet

__all__ = [
    'OrderViewSet',
    'PickViewSet',
]
