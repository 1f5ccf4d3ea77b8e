"""
Order views for Order Fulfillment.
"""

import logging

from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from ..exceptions import BusinessException
from ..models import Order
from ..services import OrderService, DispatchService, ResetService
from ..serializers.order_serializers import (
    OrderListSerializer, OrderDetailSerializer, OrderIngestSerializer, OverrideSerializer
)
from ..permissions import IsWarehouseStaff, CanApproveOrders, CanManageDispatches

logger = logging.getLogger(__name__)


def error_response(exc: BusinessException) -> Response:
    """Render a business error the way every action reports failures."""
    return Response({
        'success': False,
        'error': {
            'code': exc.code,
            'message': exc.message,
            'details': exc.details,
        }
    }, status=exc.http_status)


class OrderViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for orders.

    Orders are created by ingestion only; the workflow, dispatch and reset
    operations are exposed as actions.
    """

    queryset = Order.objects.all()
    permission_classes = [IsWarehouseStaff]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'fulfillment_status', 'dispatch_status']
    search_fields = ['order_number', 'customer_ref', 'dispatch_note_id']
    ordering_fields = ['created_at', 'order_number']

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action == 'list':
            return OrderListSerializer
        elif self.action == 'ingest':
            return OrderIngestSerializer
        elif self.action == 'mark_fulfilled':
            return OverrideSerializer
        return OrderDetailSerializer

    def get_queryset(self):
        if self.action == 'retrieve':
            return Order.objects.prefetch_related('items__product', 'items__package')
        return Order.objects.all()

    @action(detail=False, methods=['post'])
    def ingest(self, request):
        """Create or update an order from an upstream order document."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = OrderService.ingest_order(serializer.validated_data, request.user)
        except BusinessException as e:
            return error_response(e)

        return Response({
            'success': True,
            'data': {
                'order': OrderDetailSerializer(result['order']).data,
                'created': result['created'],
                'items_rebuilt': result['items_rebuilt'],
                'unmatched_items': result['unmatched_items'],
                'message': result['message'],
            }
        }, status=status.HTTP_201_CREATED if result['created'] else status.HTTP_200_OK)

    @action(detail=True, methods=['post'], permission_classes=[CanApproveOrders])
    def approve(self, request, pk=None):
        """Approve an order for picking."""
        order = self.get_object()

        try:
            updated_order = OrderService.approve_order(str(order.id), request.user)
        except BusinessException as e:
            return error_response(e)

        return Response({
            'success': True,
            'data': OrderDetailSerializer(updated_order).data
        })

    @action(detail=True, methods=['post'], url_path='mark-fulfilled', permission_classes=[CanApproveOrders])
    def mark_fulfilled(self, request, pk=None):
        """Force an order to fulfilled regardless of picking."""
        order = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            updated_order = OrderService.mark_fulfilled(
                str(order.id), request.user, serializer.validated_data['notes']
            )
        except BusinessException as e:
            return error_response(e)

        return Response({
            'success': True,
            'data': OrderDetailSerializer(updated_order).data
        })

    @action(detail=True, methods=['get'], url_path='fulfillment-status')
    def fulfillment_status(self, request, pk=None):
        """Fulfillment status derived from the order's items."""
        order = self.get_object()
        return Response({
            'success': True,
            'data': {
                'order_number': order.order_number,
                'status': order.status,
                'fulfillment_status': OrderService.get_fulfillment_status(str(order.id)),
            }
        })

    @action(detail=True, methods=['get'])
    def summary(self, request, pk=None):
        """Order state with per-item progress."""
        order = self.get_object()
        return Response({
            'success': True,
            'data': OrderService.get_order_summary(str(order.id))
        })

    @action(detail=True, methods=['post'], url_path='dispatch', permission_classes=[CanManageDispatches])
    def create_dispatch(self, request, pk=None):
        """Create the ERP delivery note for a fully picked order."""
        order = self.get_object()

        try:
            result = DispatchService.create_dispatch(str(order.id), request.user)
        except BusinessException as e:
            return error_response(e)

        return Response({'success': True, 'data': result}, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='clear-dispatch', permission_classes=[CanManageDispatches])
    def clear_dispatch(self, request, pk=None):
        """Roll back the order's delivery note."""
        order = self.get_object()

        try:
            result = DispatchService.clear_dispatch(str(order.id), request.user, request.data.get('notes', ''))
        except BusinessException as e:
            return error_response(e)

        return Response({'success': True, 'data': result})

    @action(detail=True, methods=['post'], permission_classes=[CanManageDispatches])
    def reset(self, request, pk=None):
        """Undo all picking of the order."""
        order = self.get_object()

        try:
            result = ResetService.reset_order(str(order.id), request.user)
        except BusinessException as e:
            return error_response(e)

        return Response({'success': True, 'data': result})

    @action(detail=False, methods=['post'], url_path='reset-all', permission_classes=[CanManageDispatches])
    def reset_all(self, request):
        """Reset every order."""
        result = ResetService.reset_all_orders(request.user)
        logger.warning(f"Bulk reset requested through the API by {request.user}")
        return Response({'success': True, 'data': result})

    @action(detail=False, methods=['post'], url_path='clear-dispatches', permission_classes=[CanManageDispatches])
    def clear_dispatches(self, request):
        """Clear committed delivery notes of all fulfilled orders."""
        result = ResetService.clear_fulfilled_dispatches(request.user)
        return Response({'success': True, 'data': result})
