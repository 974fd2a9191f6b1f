import logging
from contextlib import contextmanager
from typing import Generator, Iterable, Mapping

from django.db import DatabaseError, reset_queries, transaction
from django.utils.text import slugify

from siater_api.exceptions import CatalogError, CatalogItemNotFound, ReconciliationError
from siater_data.models import (
    AttributeTaxonomy,
    Product,
    ProductAttribute,
    ProductImage,
    Term,
    VariationAttribute,
)
from siater_data.sync.catalog import ItemFields, ItemKind, Selection, TermRef

logger = logging.getLogger(__name__)

IN_STOCK = "instock"
OUT_OF_STOCK = "outofstock"
_WRITABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "regular_price",
        "sale_price",
        "manage_stock",
        "stock_quantity",
        "stock_status",
        "weight",
        "status",
        "catalog_visibility",
    }
)


def _term_slug(name: str) -> str:
    return slugify(name) or name.strip().lower()


def _apply_fields(product: Product, fields: ItemFields) -> None:
    unknown = set(fields) - _WRITABLE_FIELDS
    if unknown:
        raise ReconciliationError(f"Unsupported catalog fields: {', '.join(sorted(unknown))}")
    for name, value in fields.items():
        setattr(product, name, value)


def _live_products():
    return Product.objects.exclude(status=Product.Status.TRASH)


@contextmanager
def _catalog_errors(action: str) -> Generator[None, None, None]:
    try:
        yield
    except DatabaseError as exc:
        raise CatalogError(f"Failed to {action}: {exc}") from exc


class DjangoCatalog:
    """Local product catalog kept in the ``siater_data`` tables.

    Database failures surface as ``CatalogError`` so the engine can treat them
    per record.
    """

    def find_id_by_sku(self, sku: str) -> int | None:
        if not sku:
            return None
        with _catalog_errors(f"look up {sku}"):
            return _live_products().filter(sku=sku).order_by("id").values_list("id", flat=True).first()

    def create_item(self, kind: ItemKind, fields: ItemFields) -> int:
        sku = fields.get("sku")
        product = Product(kind=ItemKind(kind).value, sku=sku or None)
        _apply_fields(product, {name: value for name, value in fields.items() if name != "sku"})
        with _catalog_errors(f"create {kind} item {sku}"):
            product.save()
        return product.id

    def update_item(self, item_id: int, fields: ItemFields) -> None:
        product = self._get(item_id)
        _apply_fields(product, fields)
        with _catalog_errors(f"update item {item_id}"):
            product.save()

    def get_attributes(self, parent_id: int) -> dict[str, list[int]] | None:
        parent = self._get(parent_id)
        if parent.kind != Product.Kind.VARIABLE:
            return None
        with _catalog_errors(f"read attributes of {parent_id}"):
            return {attribute.taxonomy: list(attribute.options) for attribute in parent.attributes.all()}

    def set_attributes(self, parent_id: int, attributes: Mapping[str, list[int]]) -> None:
        parent = self._get(parent_id)
        with _catalog_errors(f"set attributes of {parent_id}"), transaction.atomic():
            for position, (taxonomy, options) in enumerate(attributes.items()):
                ProductAttribute.objects.update_or_create(
                    product=parent,
                    taxonomy=taxonomy,
                    defaults={"options": list(options), "position": position},
                )
            parent.attributes.exclude(taxonomy__in=list(attributes)).delete()

    def ensure_attribute_taxonomy(self, taxonomy: str, label: str) -> None:
        with _catalog_errors(f"create attribute taxonomy {taxonomy}"):
            _, created = AttributeTaxonomy.objects.get_or_create(name=taxonomy, defaults={"label": label})
        if created:
            logger.info("Created attribute taxonomy %s (%s)", taxonomy, label)

    def ensure_term(self, taxonomy: str, name: str, parent_id: int | None = None) -> TermRef:
        with _catalog_errors(f"create {taxonomy} term {name}"):
            term, created = Term.objects.get_or_create(
                taxonomy=taxonomy,
                slug=_term_slug(name),
                defaults={"name": name, "parent_id": parent_id},
            )
        if created:
            logger.debug("Created %s term %s", taxonomy, name)
        return TermRef(id=term.id, name=term.name, slug=term.slug)

    def assign_terms(self, item_id: int, taxonomy: str, term_ids: Iterable[int]) -> None:
        product = self._get(item_id)
        with _catalog_errors(f"assign {taxonomy} terms to {item_id}"), transaction.atomic():
            product.terms.remove(*product.terms.filter(taxonomy=taxonomy))
            product.terms.add(*Term.objects.filter(taxonomy=taxonomy, id__in=list(term_ids)))

    def find_variation(self, parent_id: int, selection: Selection) -> int | None:
        candidates = _live_products().filter(parent_id=parent_id, kind=Product.Kind.VARIATION)
        for taxonomy, value in selection.items():
            candidates = candidates.filter(selection__taxonomy=taxonomy, selection__value=value)
        with _catalog_errors(f"look up variation of {parent_id}"):
            for variation in candidates.prefetch_related("selection").order_by("id"):
                if {row.taxonomy: row.value for row in variation.selection.all()} == dict(selection):
                    return variation.id
        return None

    def create_variation(self, parent_id: int, selection: Selection, fields: ItemFields) -> int:
        parent = self._get(parent_id)
        variation = Product(kind=Product.Kind.VARIATION, parent=parent, sku=fields.get("sku") or None)
        _apply_fields(variation, {name: value for name, value in fields.items() if name != "sku"})
        with _catalog_errors(f"create variation for {parent_id}"), transaction.atomic():
            variation.save()
            VariationAttribute.objects.bulk_create(
                [
                    VariationAttribute(variation=variation, taxonomy=taxonomy, value=value)
                    for taxonomy, value in selection.items()
                ]
            )
        return variation.id

    def sync_parent_stock(self, parent_id: int) -> None:
        parent = self._get(parent_id)
        if parent.kind != Product.Kind.VARIABLE:
            return
        with _catalog_errors(f"update stock of {parent_id}"):
            in_stock = _live_products().filter(parent=parent, stock_status=IN_STOCK).exists()
            parent.stock_status = IN_STOCK if in_stock else OUT_OF_STOCK
            parent.manage_stock = False
            parent.save(update_fields=["stock_status", "manage_stock", "updated_at"])

    def list_published_skus(self) -> list[str]:
        published = (
            Product.objects.filter(
                status=Product.Status.PUBLISH,
                kind__in=[Product.Kind.SIMPLE, Product.Kind.VARIABLE],
            )
            .exclude(sku__isnull=True)
            .exclude(sku="")
            .order_by("id")
            .values_list("sku", flat=True)
        )
        with _catalog_errors("list published SKUs"):
            return list(published)

    def ids_for_skus(self, skus: Iterable[str]) -> list[int]:
        matching = (
            Product.objects.filter(status=Product.Status.PUBLISH, sku__in=list(skus))
            .exclude(kind=Product.Kind.VARIATION)
            .order_by("id")
            .values_list("id", flat=True)
        )
        with _catalog_errors("resolve SKUs to ids"):
            return list(matching)

    def trash(self, item_ids: Iterable[int]) -> int:
        ids = list(item_ids)
        if not ids:
            return 0
        with _catalog_errors(f"trash {len(ids)} items"):
            return Product.objects.filter(id__in=ids).update(status=Product.Status.TRASH)

    def release_memory(self) -> None:
        reset_queries()

    def clear_caches(self) -> None:
        reset_queries()
        logger.debug("Catalog caches cleared")

    @staticmethod
    def _get(item_id: int) -> Product:
        try:
            return Product.objects.get(id=item_id)
        except Product.DoesNotExist as exc:
            raise CatalogItemNotFound(f"Catalog item {item_id} not found") from exc
        except DatabaseError as exc:
            raise CatalogError(f"Failed to load item {item_id}: {exc}") from exc


class DjangoImageIngestor:
    """Records image URLs against catalog items; fetching the files is left to the storefront."""

    def set_product_images(self, item_id: int, main_url: str, gallery: list[str]) -> None:
        rows = []
        if main_url:
            rows.append(ProductImage(product_id=item_id, url=main_url, role=ProductImage.Role.MAIN))
        rows.extend(
            ProductImage(product_id=item_id, url=url, role=ProductImage.Role.GALLERY, position=position)
            for position, url in enumerate(gallery)
        )
        with _catalog_errors(f"store images of {item_id}"), transaction.atomic():
            ProductImage.objects.filter(
                product_id=item_id, role__in=[ProductImage.Role.MAIN, ProductImage.Role.GALLERY]
            ).delete()
            ProductImage.objects.bulk_create(rows)

    def set_variation_image(self, variation_id: int, urls: list[str]) -> None:
        if not urls:
            return
        with _catalog_errors(f"store variation image of {variation_id}"), transaction.atomic():
            ProductImage.objects.filter(product_id=variation_id, role=ProductImage.Role.VARIATION).delete()
            ProductImage.objects.create(product_id=variation_id, url=urls[0], role=ProductImage.Role.VARIATION)
