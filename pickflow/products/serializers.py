from rest_framework import serializers
from .models import Product, ProductPackage


class ProductPackageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductPackage
        fields = ["id", "product", "name", "package_number", "barcode", "quantity", "created_at"]
        read_only_fields = ["id", "created_at"]


class ProductSerializer(serializers.ModelSerializer):
    packages = ProductPackageSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "sku",
            "erp_code",
            "barcode",
            "description",
            "is_active",
            "packages",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


class ProductListSerializer(serializers.ModelSerializer):
    package_count = serializers.IntegerField(source="packages.count", read_only=True)

    class Meta:
        model = Product
        fields = ["id", "name", "sku", "erp_code", "barcode", "package_count", "is_active"]


class CatalogMatchSerializer(serializers.Serializer):
    identifier = serializers.CharField()
    matched = serializers.BooleanField()
    matched_on = serializers.CharField(allow_null=True)
    product = ProductListSerializer(allow_null=True)
    package = ProductPackageSerializer(allow_null=True)
