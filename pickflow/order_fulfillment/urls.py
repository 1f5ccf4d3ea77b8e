"""
URL configuration for Order Fulfillment.

Provides API endpoints for orders, picking and ERP dispatch.
"""

from rest_framework.routers import DefaultRouter

from .views import OrderViewSet, PickViewSet

router = DefaultRouter()
router.register(r'orders', OrderViewSet, basename='order')
router.register(r'picks', PickViewSet, basename='pick')

urlpatterns = router.urls
