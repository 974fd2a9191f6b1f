import django.db.models.deletion
from django.db import migrations, models


def _id_field() -> models.BigAutoField:
    return models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")


class Migration(migrations.Migration):
    initial = True

    dependencies: list[tuple[str, str]] = []

    operations = [
        migrations.CreateModel(
            name="SyncCursor",
            fields=[
                ("id", _id_field()),
                ("offset", models.IntegerField(default=0)),
                ("last_sync_start", models.DateTimeField(null=True)),
                ("is_syncing", models.BooleanField(default=False)),
                ("lock_held", models.BooleanField(default=False)),
                ("lock_acquired_at", models.DateTimeField(null=True)),
                (
                    "last_run_status",
                    models.CharField(
                        choices=[
                            ("idle", "Idle"),
                            ("running", "Running"),
                            ("success", "Success"),
                            ("failed", "Failed"),
                            ("skipped", "Skipped"),
                        ],
                        default="idle",
                        max_length=20,
                    ),
                ),
                ("last_run_finished_at", models.DateTimeField(null=True)),
                ("last_error", models.TextField(null=True)),
                ("records_processed", models.BigIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Sync Cursor",
                "verbose_name_plural": "Sync Cursor",
            },
        ),
        migrations.CreateModel(
            name="CleanupCycleState",
            fields=[
                ("id", _id_field()),
                (
                    "phase",
                    models.CharField(
                        choices=[
                            ("none", "None"),
                            ("fetch", "Fetch"),
                            ("compare", "Compare"),
                            ("delete", "Delete"),
                        ],
                        default="none",
                        max_length=10,
                    ),
                ),
                ("fetch_offset", models.IntegerField(default=0)),
                ("supplier_skus", models.JSONField(default=list)),
                ("skus_to_delete", models.JSONField(default=list)),
                ("last_cycle_completed_at", models.DateTimeField(null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Cleanup Cycle State",
                "verbose_name_plural": "Cleanup Cycle State",
            },
        ),
        migrations.CreateModel(
            name="Term",
            fields=[
                ("id", _id_field()),
                ("taxonomy", models.CharField(db_index=True, max_length=64)),
                ("name", models.CharField(max_length=255)),
                ("slug", models.CharField(max_length=255)),
                (
                    "parent",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="children",
                        to="siater_data.term",
                    ),
                ),
            ],
            options={"unique_together": {("taxonomy", "slug")}},
        ),
        migrations.CreateModel(
            name="AttributeTaxonomy",
            fields=[
                ("id", _id_field()),
                ("name", models.CharField(max_length=64, unique=True)),
                ("label", models.CharField(max_length=255)),
            ],
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", _id_field()),
                ("sku", models.CharField(db_index=True, max_length=255, null=True)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("simple", "Simple"),
                            ("variable", "Variable"),
                            ("variation", "Variation"),
                        ],
                        default="simple",
                        max_length=20,
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="variations",
                        to="siater_data.product",
                    ),
                ),
                ("name", models.CharField(default="", max_length=255)),
                ("description", models.TextField(default="")),
                ("regular_price", models.FloatField(null=True)),
                ("sale_price", models.FloatField(null=True)),
                ("manage_stock", models.BooleanField(default=False)),
                ("stock_quantity", models.IntegerField(null=True)),
                ("stock_status", models.CharField(default="outofstock", max_length=20)),
                ("weight", models.FloatField(null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("publish", "Publish"), ("trash", "Trash")],
                        default="publish",
                        max_length=20,
                    ),
                ),
                ("catalog_visibility", models.CharField(default="visible", max_length=20)),
                (
                    "terms",
                    models.ManyToManyField(blank=True, related_name="products", to="siater_data.term"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="ProductAttribute",
            fields=[
                ("id", _id_field()),
                ("taxonomy", models.CharField(max_length=64)),
                ("position", models.IntegerField(default=0)),
                ("visible", models.BooleanField(default=True)),
                ("variation", models.BooleanField(default=True)),
                ("options", models.JSONField(default=list)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="attributes",
                        to="siater_data.product",
                    ),
                ),
            ],
            options={
                "ordering": ["position"],
                "unique_together": {("product", "taxonomy")},
            },
        ),
        migrations.CreateModel(
            name="VariationAttribute",
            fields=[
                ("id", _id_field()),
                ("taxonomy", models.CharField(max_length=64)),
                ("value", models.CharField(max_length=255)),
                (
                    "variation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="selection",
                        to="siater_data.product",
                    ),
                ),
            ],
            options={"unique_together": {("variation", "taxonomy")}},
        ),
        migrations.CreateModel(
            name="ProductImage",
            fields=[
                ("id", _id_field()),
                ("url", models.CharField(max_length=1024)),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("main", "Main"),
                            ("gallery", "Gallery"),
                            ("variation", "Variation"),
                        ],
                        max_length=20,
                    ),
                ),
                ("position", models.IntegerField(default=0)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="images",
                        to="siater_data.product",
                    ),
                ),
            ],
            options={"ordering": ["role", "position"]},
        ),
    ]
