"""
Picking views for Order Fulfillment.
"""

from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response

from ..exceptions import BusinessException
from ..models import Pick
from ..services import PickingService
from ..serializers.picking_serializers import (
    PickListSerializer, PickDetailSerializer, StartPickSerializer, ScanSerializer
)
from ..permissions import IsWarehouseStaff
from .order_views import error_response


class PickViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for picking sessions.

    ``POST /picks/`` opens (or resumes) the session for an order; scans are
    posted to ``/picks/{id}/scan/``.
    """

    queryset = Pick.objects.select_related('order', 'picker')
    permission_classes = [IsWarehouseStaff]
    filterset_fields = ['status', 'order']

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action == 'list':
            return PickListSerializer
        elif self.action == 'create':
            return StartPickSerializer
        elif self.action == 'scan':
            return ScanSerializer
        return PickDetailSerializer

    def create(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = PickingService.start_pick(serializer.validated_data['order_id'], request.user)
        except BusinessException as e:
            return error_response(e)

        return Response({
            'success': True,
            'data': PickDetailSerializer(result['pick']).data,
            'message': result['message'],
        }, status=status.HTTP_201_CREATED if result['created'] else status.HTTP_200_OK)

    @action(detail=True, methods=['post'])
    def scan(self, request, pk=None):
        """Record a barcode scan against an order item."""
        pick = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = PickingService.record_scan(
                serializer.validated_data['order_item_id'],
                serializer.validated_data['barcode'],
                pick_id=pick.id,
                scanned_by=request.user,
            )
        except BusinessException as e:
            return error_response(e)

        return Response({'success': True, 'data': result})

    @action(detail=True, methods=['post'])
    def partial(self, request, pk=None):
        """Leave the session unfinished."""
        pick = self.get_object()

        try:
            updated_pick = PickingService.mark_partial(pick.id, request.user)
        except BusinessException as e:
            return error_response(e)

        return Response({'success': True, 'data': PickListSerializer(updated_pick).data})

    @action(detail=True, methods=['post'])
    def reset(self, request, pk=None):
        """Undo the session and its scans."""
        pick = self.get_object()

        try:
            result = PickingService.reset_pick(pick.id, request.user)
        except BusinessException as e:
            return error_response(e)

        return Response({'success': True, 'data': result})

    @action(detail=True, methods=['get'])
    def summary(self, request, pk=None):
        """Scan counts of the session per order item."""
        pick = self.get_object()
        return Response({'success': True, 'data': PickingService.get_pick_summary(pick.id)})
