import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("sku", models.CharField(db_index=True, max_length=100, unique=True)),
                ("erp_code", models.CharField(blank=True, help_text="Stock code used by the ERP", max_length=100)),
                (
                    "barcode",
                    models.CharField(
                        blank=True, help_text="Barcode scanned for single-unit products", max_length=100
                    ),
                ),
                ("description", models.TextField(blank=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Product",
                "verbose_name_plural": "Products",
                "db_table": "products",
                "ordering": ["name"],
                "indexes": [
                    models.Index(fields=["erp_code"], name="idx_product_erp_code"),
                    models.Index(fields=["barcode"], name="idx_product_barcode"),
                    models.Index(fields=["is_active"], name="idx_product_active"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductPackage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("package_number", models.PositiveIntegerField(default=1)),
                ("barcode", models.CharField(db_index=True, max_length=100)),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        default=1, help_text="Scans of this package that make up one product set"
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="packages",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "verbose_name": "Product Package",
                "verbose_name_plural": "Product Packages",
                "db_table": "product_packages",
                "ordering": ["id"],
                "indexes": [
                    models.Index(fields=["product", "package_number"], name="idx_package_product_number"),
                ],
            },
        ),
    ]
