"""Collaborator interfaces the sync engine talks to, plus its per-record result type."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Protocol, Self

from siater_api.type_defs import FieldValue

CATEGORY_TAXONOMY = "product_cat"
BRAND_TAXONOMY = "product_brand"

ItemFields = Mapping[str, FieldValue | bool | None]
Selection = Mapping[str, str]


class ItemKind(str, Enum):
    SIMPLE = "simple"
    VARIABLE = "variable"


class FailureReason(str, Enum):
    MISSING_SKU = "missing_sku"
    MISSING_ATTRIBUTES = "missing_attributes"
    PARENT_NOT_VARIABLE = "parent_not_variable"
    CATALOG_ERROR = "catalog_error"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class SyncResult:
    item_id: int | None = None
    reason: FailureReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None and self.item_id is not None

    @classmethod
    def success(cls, item_id: int) -> Self:
        return cls(item_id=item_id)

    @classmethod
    def failure(cls, reason: FailureReason, detail: str = "") -> Self:
        return cls(reason=reason, detail=detail)


@dataclass(frozen=True)
class TermRef:
    id: int
    name: str
    slug: str


class Catalog(Protocol):
    def find_id_by_sku(self, sku: str) -> int | None:
        """Live (non-trashed) item carrying ``sku``, top-level or variation."""
        ...

    def create_item(self, kind: ItemKind, fields: ItemFields) -> int:
        ...

    def update_item(self, item_id: int, fields: ItemFields) -> None:
        ...

    def get_attributes(self, parent_id: int) -> dict[str, list[int]] | None:
        """Attribute taxonomy -> allowed term ids, or ``None`` if not a variable item."""
        ...

    def set_attributes(self, parent_id: int, attributes: Mapping[str, list[int]]) -> None:
        ...

    def ensure_attribute_taxonomy(self, taxonomy: str, label: str) -> None:
        ...

    def ensure_term(self, taxonomy: str, name: str, parent_id: int | None = None) -> TermRef:
        ...

    def assign_terms(self, item_id: int, taxonomy: str, term_ids: Iterable[int]) -> None:
        ...

    def find_variation(self, parent_id: int, selection: Selection) -> int | None:
        ...

    def create_variation(self, parent_id: int, selection: Selection, fields: ItemFields) -> int:
        ...

    def sync_parent_stock(self, parent_id: int) -> None:
        ...

    def list_published_skus(self) -> list[str]:
        ...

    def ids_for_skus(self, skus: Iterable[str]) -> list[int]:
        ...

    def trash(self, item_ids: Iterable[int]) -> int:
        ...

    def release_memory(self) -> None:
        ...

    def clear_caches(self) -> None:
        ...


class ImageIngestor(Protocol):
    def set_product_images(self, item_id: int, main_url: str, gallery: list[str]) -> None:
        ...

    def set_variation_image(self, variation_id: int, urls: list[str]) -> None:
        ...
