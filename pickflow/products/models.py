from django.db import models


class Product(models.Model):
    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=100, unique=True, db_index=True)
    erp_code = models.CharField(
        max_length=100, blank=True, help_text="Stock code used by the ERP"
    )
    barcode = models.CharField(
        max_length=100, blank=True, help_text="Barcode scanned for single-unit products"
    )
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "products"
        verbose_name = "Product"
        verbose_name_plural = "Products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["erp_code"], name="idx_product_erp_code"),
            models.Index(fields=["barcode"], name="idx_product_barcode"),
            models.Index(fields=["is_active"], name="idx_product_active"),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"

    @property
    def dispatch_code(self):
        """Stock code sent to the ERP on delivery notes."""
        return self.erp_code or self.sku


class ProductPackage(models.Model):
    """A separately boxed part of a product; each one is scanned on its own."""

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="packages")
    name = models.CharField(max_length=200)
    package_number = models.PositiveIntegerField(default=1)
    barcode = models.CharField(max_length=100, db_index=True)
    quantity = models.PositiveIntegerField(
        default=1, help_text="Scans of this package that make up one product set"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "product_packages"
        verbose_name = "Product Package"
        verbose_name_plural = "Product Packages"
        ordering = ["id"]
        indexes = [
            models.Index(fields=["product", "package_number"], name="idx_package_product_number"),
        ]

    def __str__(self):
        return f"{self.product.sku} / {self.name} ({self.barcode})"
