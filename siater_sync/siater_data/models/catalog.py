from django.db import models


class Term(models.Model):
    taxonomy = models.CharField(max_length=64, db_index=True)
    name = models.CharField(max_length=255)
    slug = models.CharField(max_length=255)
    parent = models.ForeignKey("self", null=True, on_delete=models.SET_NULL, related_name="children")

    class Meta:
        unique_together = [("taxonomy", "slug")]

    def __str__(self) -> str:
        return f"{self.taxonomy}:{self.name}"


class AttributeTaxonomy(models.Model):
    name = models.CharField(max_length=64, unique=True)
    label = models.CharField(max_length=255)


class Product(models.Model):
    class Kind(models.TextChoices):
        SIMPLE = "simple"
        VARIABLE = "variable"
        VARIATION = "variation"

    class Status(models.TextChoices):
        PUBLISH = "publish"
        TRASH = "trash"

    sku = models.CharField(max_length=255, null=True, db_index=True)
    kind = models.CharField(max_length=20, choices=Kind.choices, default=Kind.SIMPLE)
    parent = models.ForeignKey("self", null=True, on_delete=models.CASCADE, related_name="variations")
    name = models.CharField(max_length=255, default="")
    description = models.TextField(default="")
    regular_price = models.FloatField(null=True)
    sale_price = models.FloatField(null=True)
    manage_stock = models.BooleanField(default=False)
    stock_quantity = models.IntegerField(null=True)
    stock_status = models.CharField(max_length=20, default="outofstock")
    weight = models.FloatField(null=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PUBLISH)
    catalog_visibility = models.CharField(max_length=20, default="visible")
    terms = models.ManyToManyField(Term, blank=True, related_name="products")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.kind} {self.sku}"


class ProductAttribute(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="attributes")
    taxonomy = models.CharField(max_length=64)
    position = models.IntegerField(default=0)
    visible = models.BooleanField(default=True)
    variation = models.BooleanField(default=True)
    options = models.JSONField(default=list)

    class Meta:
        unique_together = [("product", "taxonomy")]
        ordering = ["position"]


class VariationAttribute(models.Model):
    variation = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="selection")
    taxonomy = models.CharField(max_length=64)
    value = models.CharField(max_length=255)

    class Meta:
        unique_together = [("variation", "taxonomy")]


class ProductImage(models.Model):
    class Role(models.TextChoices):
        MAIN = "main"
        GALLERY = "gallery"
        VARIATION = "variation"

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="images")
    url = models.CharField(max_length=1024)
    role = models.CharField(max_length=20, choices=Role.choices)
    position = models.IntegerField(default=0)

    class Meta:
        ordering = ["role", "position"]
