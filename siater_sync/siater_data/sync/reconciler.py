import functools
import logging
from typing import Callable

from siater_api.config import settings
from siater_api.config.sections import Feed
from siater_api.exceptions import CatalogError, CatalogItemNotFound
from siater_api.feed import FeedRecord
from siater_data.sync.catalog import (
    BRAND_TAXONOMY,
    CATEGORY_TAXONOMY,
    Catalog,
    FailureReason,
    ImageIngestor,
    ItemKind,
    SyncResult,
)

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_NAME = "Prodotto senza nome"
IN_STOCK = "instock"
OUT_OF_STOCK = "outofstock"

# (taxonomy, label, feed field), in attribute position order.
VARIATION_AXES = (
    ("pa_size", "Taglia", "variante1"),
    ("pa_color", "Colore", "variante2"),
)

# Errors that fail a single record instead of the page.
RECORD_ERRORS = (CatalogError, ValueError, TypeError, ArithmeticError)


def _stock_fields(record: FeedRecord) -> dict[str, object]:
    return {
        "stock_quantity": record.stock_quantity,
        "stock_status": IN_STOCK if record.in_stock else OUT_OF_STOCK,
    }


def _guarded(operation: str) -> Callable:
    def decorator(method: Callable[..., SyncResult]) -> Callable[..., SyncResult]:
        @functools.wraps(method)
        def wrapper(self: "ProductReconciler", *args, **kwargs) -> SyncResult:
            try:
                return method(self, *args, **kwargs)
            except CatalogItemNotFound as exc:
                logger.error("Error during %s: %s", operation, exc)
                return SyncResult.failure(FailureReason.NOT_FOUND, str(exc))
            except RECORD_ERRORS as exc:
                logger.error("Error during %s: %s", operation, exc)
                return SyncResult.failure(FailureReason.CATALOG_ERROR, str(exc))

        return wrapper

    return decorator


class ProductReconciler:
    """Applies feed records to the catalog as create-or-update by SKU.

    Each public operation returns a ``SyncResult``; errors raised while talking
    to the catalog become a failed result for that record only.
    """

    def __init__(self, catalog: Catalog, images: ImageIngestor, feed: Feed | None = None) -> None:
        self.catalog = catalog
        self.images = images
        self.feed = feed or settings.feed

    @_guarded("simple product sync")
    def sync_simple(self, record: FeedRecord) -> SyncResult:
        if not record.code:
            logger.error("Cannot sync product without SKU")
            return SyncResult.failure(FailureReason.MISSING_SKU)

        existing_id = self.catalog.find_id_by_sku(record.code)
        if existing_id is not None:
            return self._update_simple(existing_id, record)
        return self._create_simple(record)

    def _create_simple(self, record: FeedRecord) -> SyncResult:
        fields: dict[str, object] = {
            "sku": record.code,
            "name": record.name or DEFAULT_PRODUCT_NAME,
            "status": "publish",
            "catalog_visibility": "visible",
            "regular_price": record.price,
            "sale_price": record.sale_price or None,
            "manage_stock": True,
            **_stock_fields(record),
        }
        if record.description:
            fields["description"] = record.description
        if record.weight:
            fields["weight"] = record.weight

        item_id = self.catalog.create_item(ItemKind.SIMPLE, fields)
        self._tag(item_id, record)
        self.images.set_product_images(item_id, record.image, record.gallery)
        logger.info("Created product %s (ID: %s)", record.code, item_id)
        return SyncResult.success(item_id)

    def _update_simple(self, item_id: int, record: FeedRecord) -> SyncResult:
        fields: dict[str, object] = {
            "regular_price": record.price,
            "sale_price": record.sale_price or None,
            "manage_stock": True,
            **_stock_fields(record),
        }
        if record.name:
            fields["name"] = record.name
        if record.description:
            fields["description"] = record.description
        if record.weight:
            fields["weight"] = record.weight

        self.catalog.update_item(item_id, fields)
        self._tag(item_id, record)
        if self.feed.update_images:
            self.images.set_product_images(item_id, record.image, record.gallery)
        logger.debug("Updated product %s (ID: %s)", record.code, item_id)
        return SyncResult.success(item_id)

    @_guarded("variable product sync")
    def sync_variable(self, record: FeedRecord) -> SyncResult:
        """Create the parent shell of a variation group once.

        An existing parent is returned as is: its own name, description and
        weight are only written at creation, later visits touch its attribute
        options and children.
        """

        if not record.code:
            logger.error("Cannot sync variable product without SKU")
            return SyncResult.failure(FailureReason.MISSING_SKU)

        parent_sku = record.group_code or record.code
        existing_id = self.catalog.find_id_by_sku(parent_sku)
        if existing_id is not None:
            return SyncResult.success(existing_id)

        fields: dict[str, object] = {
            "sku": parent_sku,
            "name": record.name or DEFAULT_PRODUCT_NAME,
            "status": "publish",
            "catalog_visibility": "visible",
        }
        if record.description:
            fields["description"] = record.description
        if record.weight:
            fields["weight"] = record.weight

        item_id = self.catalog.create_item(ItemKind.VARIABLE, fields)
        self._tag(item_id, record)
        self.images.set_product_images(item_id, record.image, record.gallery)
        logger.info("Created variable product %s (ID: %s)", parent_sku, item_id)
        return SyncResult.success(item_id)

    @_guarded("variation sync")
    def sync_variation(self, parent_id: int, record: FeedRecord) -> SyncResult:
        axes = [
            (taxonomy, label, record.text(field_name).strip())
            for taxonomy, label, field_name in VARIATION_AXES
            if record.text(field_name).strip()
        ]
        if not axes:
            logger.warning("Variation without attributes for product %s", parent_id)
            return SyncResult.failure(FailureReason.MISSING_ATTRIBUTES)

        attributes = self.catalog.get_attributes(parent_id)
        if attributes is None:
            logger.warning("Product %s is not variable, skipping variation %s", parent_id, record.code)
            return SyncResult.failure(FailureReason.PARENT_NOT_VARIABLE)

        selection: dict[str, str] = {}
        changed = False
        for taxonomy, label, value in axes:
            self.catalog.ensure_attribute_taxonomy(taxonomy, label)
            term = self.catalog.ensure_term(taxonomy, value)
            options = attributes.setdefault(taxonomy, [])
            if term.id not in options:
                options.append(term.id)
                changed = True
            selection[taxonomy] = term.slug
        if changed:
            self.catalog.set_attributes(parent_id, attributes)

        variation_id = self.catalog.find_variation(parent_id, selection)
        if variation_id is not None:
            return self._update_variation(variation_id, record)
        return self._create_variation(parent_id, selection, record)

    def _create_variation(self, parent_id: int, selection: dict[str, str], record: FeedRecord) -> SyncResult:
        fields: dict[str, object] = {
            "sku": f"{record.code}-{'-'.join(selection.values())}",
            "status": "publish",
            "regular_price": record.price,
            "sale_price": record.sale_price or None,
            "manage_stock": True,
            **_stock_fields(record),
        }
        if record.weight:
            fields["weight"] = record.weight

        variation_id = self.catalog.create_variation(parent_id, selection, fields)
        if self.feed.variation_images:
            self.images.set_variation_image(variation_id, record.variation_images)
        logger.info("Created variation %s for product %s", variation_id, parent_id)
        return SyncResult.success(variation_id)

    def _update_variation(self, variation_id: int, record: FeedRecord) -> SyncResult:
        fields: dict[str, object] = {
            "regular_price": record.price,
            "sale_price": record.sale_price or None,
            **_stock_fields(record),
        }
        if record.weight:
            fields["weight"] = record.weight

        self.catalog.update_item(variation_id, fields)
        if self.feed.variation_images and self.feed.update_images:
            self.images.set_variation_image(variation_id, record.variation_images)
        logger.debug("Updated variation %s", variation_id)
        return SyncResult.success(variation_id)

    @_guarded("parent stock sync")
    def sync_parent_stock(self, parent_id: int) -> SyncResult:
        self.catalog.sync_parent_stock(parent_id)
        return SyncResult.success(parent_id)

    def _tag(self, item_id: int, record: FeedRecord) -> None:
        if self.feed.sync_categories and record.categories:
            term_ids = []
            parent_term_id = None
            for name in record.categories:
                term = self.catalog.ensure_term(CATEGORY_TAXONOMY, name, parent_id=parent_term_id)
                parent_term_id = term.id
                term_ids.append(term.id)
            self.catalog.assign_terms(item_id, CATEGORY_TAXONOMY, term_ids)

        if record.brand:
            brand = self.catalog.ensure_term(BRAND_TAXONOMY, record.brand)
            self.catalog.assign_terms(item_id, BRAND_TAXONOMY, [brand.id])
