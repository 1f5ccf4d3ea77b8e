from rest_framework import viewsets, filters, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from .models import Product, ProductPackage
from .serializers import (
    CatalogMatchSerializer,
    ProductListSerializer,
    ProductPackageSerializer,
    ProductSerializer,
)
from .services.catalog_resolver import CatalogResolver
from order_fulfillment.permissions import IsWarehouseStaff


class ProductViewSet(viewsets.ModelViewSet):
    queryset = Product.objects.prefetch_related("packages").all()
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    search_fields = ["name", "sku", "erp_code", "barcode"]
    filterset_fields = ["is_active", "erp_code"]
    ordering_fields = ["name", "sku", "created_at"]
    ordering = ["name"]

    def get_serializer_class(self):
        if self.action == "list":
            return ProductListSerializer
        return ProductSerializer

    def get_permissions(self):
        if self.action in ["create", "update", "partial_update", "destroy"]:
            return [IsWarehouseStaff()]
        return [IsAuthenticated()]

    @action(detail=False, methods=["get"])
    def resolve(self, request):
        """Resolve an external line identifier against the catalog."""
        identifier = request.query_params.get("identifier", "")
        if not identifier:
            return Response(
                {
                    "success": False,
                    "error": {"code": "VALIDATION_ERROR", "message": "identifier is required"},
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        match = CatalogResolver.resolve_line(identifier)
        serializer = CatalogMatchSerializer({
            "identifier": identifier,
            "matched": match is not None,
            "matched_on": match.matched_on if match else None,
            "product": match.product if match else None,
            "package": match.package if match else None,
        })
        return Response({"success": True, "data": serializer.data})


class ProductPackageViewSet(viewsets.ModelViewSet):
    queryset = ProductPackage.objects.select_related("product").all()
    serializer_class = ProductPackageSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    search_fields = ["name", "barcode", "product__sku"]
    filterset_fields = ["product"]

    def get_permissions(self):
        if self.action in ["create", "update", "partial_update", "destroy"]:
            return [IsWarehouseStaff()]
        return [IsAuthenticated()]
