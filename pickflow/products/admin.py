from django.contrib import admin
from .models import Product, ProductPackage


class ProductPackageInline(admin.TabularInline):
    model = ProductPackage
    extra = 0
    fields = ["package_number", "name", "barcode", "quantity"]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["name", "sku", "erp_code", "barcode", "is_active", "created_at"]
    list_filter = ["is_active", "created_at"]
    search_fields = ["name", "sku", "erp_code", "barcode"]
    readonly_fields = ["created_at", "updated_at"]
    inlines = [ProductPackageInline]


@admin.register(ProductPackage)
class ProductPackageAdmin(admin.ModelAdmin):
    list_display = ["product", "package_number", "name", "barcode", "quantity"]
    search_fields = ["name", "barcode", "product__sku"]
