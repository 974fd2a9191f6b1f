from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Mapping

import pytest

from siater_api.config.sections import Cleanup, Feed, Sync
from siater_api.exceptions import CatalogError, CatalogItemNotFound, FetchError
from siater_api.feed import FeedParser, FeedRecord, FeedSchema
from siater_api.feed.schema import FIELD_DELIMITER, RECORD_DELIMITER
from siater_data.sync.catalog import ItemKind, TermRef
from siater_data.sync.store import InMemoryStateStore

START = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeMonotonic:
    def __init__(self) -> None:
        self.current = 0.0

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FakeCatalog:
    """In-memory catalog that behaves like the storefront for the engine's purposes."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.items: dict[int, dict[str, object]] = {}
        self.attributes: dict[int, dict[str, list[int]]] = {}
        self.selections: dict[int, dict[str, str]] = {}
        self.terms: dict[tuple[str, str], TermRef] = {}
        self.term_parents: dict[int, int | None] = {}
        self.item_terms: dict[tuple[int, str], list[int]] = {}
        self.taxonomies: dict[str, str] = {}
        self.attribute_writes = 0
        self.trash_calls: list[list[int]] = []
        self.released = 0
        self.cleared = 0
        self.failing_skus: set[str] = set()
        self.on_write: Callable[[], None] | None = None

    def _written(self) -> None:
        if self.on_write is not None:
            self.on_write()

    def add(self, sku: str, kind: str = "simple", status: str = "publish", **fields: object) -> int:
        item_id = next(self._ids)
        self.items[item_id] = {"sku": sku, "kind": kind, "status": status, **fields}
        return item_id

    def find_id_by_sku(self, sku: str) -> int | None:
        for item_id, item in self.items.items():
            if item["sku"] == sku and item["status"] != "trash":
                return item_id
        return None

    def create_item(self, kind: ItemKind, fields: Mapping[str, object]) -> int:
        if fields.get("sku") in self.failing_skus:
            raise CatalogError(f"write refused for {fields.get('sku')}")
        self._written()
        return self.add(kind=ItemKind(kind).value, **dict(fields))

    def update_item(self, item_id: int, fields: Mapping[str, object]) -> None:
        if item_id not in self.items:
            raise CatalogItemNotFound(f"Catalog item {item_id} not found")
        if self.items[item_id]["sku"] in self.failing_skus:
            raise CatalogError(f"write refused for {self.items[item_id]['sku']}")
        self._written()
        self.items[item_id].update(fields)

    def get_attributes(self, parent_id: int) -> dict[str, list[int]] | None:
        if self.items[parent_id]["kind"] != "variable":
            return None
        return {taxonomy: list(options) for taxonomy, options in self.attributes.get(parent_id, {}).items()}

    def set_attributes(self, parent_id: int, attributes: Mapping[str, list[int]]) -> None:
        self.attribute_writes += 1
        self.attributes[parent_id] = {taxonomy: list(options) for taxonomy, options in attributes.items()}

    def ensure_attribute_taxonomy(self, taxonomy: str, label: str) -> None:
        self.taxonomies.setdefault(taxonomy, label)

    def ensure_term(self, taxonomy: str, name: str, parent_id: int | None = None) -> TermRef:
        slug = "-".join(name.lower().split())
        key = (taxonomy, slug)
        if key not in self.terms:
            term = TermRef(id=len(self.terms) + 1, name=name, slug=slug)
            self.terms[key] = term
            self.term_parents[term.id] = parent_id
        return self.terms[key]

    def assign_terms(self, item_id: int, taxonomy: str, term_ids: Iterable[int]) -> None:
        self.item_terms[(item_id, taxonomy)] = list(term_ids)

    def find_variation(self, parent_id: int, selection: Mapping[str, str]) -> int | None:
        for item_id, chosen in self.selections.items():
            item = self.items[item_id]
            if item["parent_id"] == parent_id and item["status"] != "trash" and chosen == dict(selection):
                return item_id
        return None

    def create_variation(self, parent_id: int, selection: Mapping[str, str], fields: Mapping[str, object]) -> int:
        self._written()
        item_id = self.add(kind="variation", parent_id=parent_id, **dict(fields))
        self.selections[item_id] = dict(selection)
        return item_id

    def sync_parent_stock(self, parent_id: int) -> None:
        children = [
            item
            for item in self.items.values()
            if item.get("parent_id") == parent_id and item["status"] != "trash"
        ]
        in_stock = any(child.get("stock_status") == "instock" for child in children)
        self.items[parent_id]["stock_status"] = "instock" if in_stock else "outofstock"

    def list_published_skus(self) -> list[str]:
        return [
            str(item["sku"])
            for item in self.items.values()
            if item["status"] == "publish" and item["kind"] != "variation" and item["sku"]
        ]

    def ids_for_skus(self, skus: Iterable[str]) -> list[int]:
        wanted = set(skus)
        return [
            item_id
            for item_id, item in self.items.items()
            if item["sku"] in wanted and item["status"] == "publish" and item["kind"] != "variation"
        ]

    def trash(self, item_ids: Iterable[int]) -> int:
        ids = list(item_ids)
        self.trash_calls.append(ids)
        for item_id in ids:
            self.items[item_id]["status"] = "trash"
        return len(ids)

    def release_memory(self) -> None:
        self.released += 1

    def clear_caches(self) -> None:
        self.cleared += 1

    def by_sku(self, sku: str) -> dict[str, object]:
        item_id = self.find_id_by_sku(sku)
        assert item_id is not None, f"no item with sku {sku}"
        return self.items[item_id]


class FakeImages:
    def __init__(self) -> None:
        self.product_calls: list[tuple[int, str, list[str]]] = []
        self.variation_calls: list[tuple[int, list[str]]] = []

    def set_product_images(self, item_id: int, main_url: str, gallery: list[str]) -> None:
        self.product_calls.append((item_id, main_url, list(gallery)))

    def set_variation_image(self, variation_id: int, urls: list[str]) -> None:
        self.variation_calls.append((variation_id, list(urls)))


class FakeFeedClient:
    """Serves canned feed bodies by offset; an exception instance is raised instead."""

    def __init__(self, pages: Mapping[int, bytes | Exception] | None = None) -> None:
        self.pages = dict(pages or {})
        self.sku_pages: dict[int, bytes | Exception] = {}
        self.requested: list[int] = []
        self.sku_requested: list[tuple[int, int]] = []

    @staticmethod
    def _serve(body: bytes | Exception | None) -> bytes:
        if body is None:
            raise FetchError("Feed returned an empty body")
        if isinstance(body, Exception):
            raise body
        return body

    def fetch_page(self, offset: int) -> bytes:
        self.requested.append(offset)
        return self._serve(self.pages.get(offset))

    def fetch_sku_page(self, offset: int, batch_size: int) -> bytes:
        self.sku_requested.append((offset, batch_size))
        return self._serve(self.sku_pages.get(offset))


def raw_record(schema: FeedSchema, **values: object) -> str:
    return FIELD_DELIMITER.join(str(values.get(name, "")) for name in schema.field_names)


def raw_page(schema: FeedSchema, records: Iterable[Mapping[str, object]]) -> bytes:
    return RECORD_DELIMITER.join(raw_record(schema, **record) for record in records).encode("utf-8")


def sku_page(codes: Iterable[str], header: str = "Codice{|}Descrizione") -> bytes:
    lines = [header, *(f"{code}{{|}}Articolo {code}" for code in codes)]
    return RECORD_DELIMITER.join(lines).encode("utf-8")


@pytest.fixture
def feed_settings() -> Feed:
    feed = Feed()
    feed.url = "supplier.example"
    feed.page_size = 50
    return feed


@pytest.fixture
def sync_settings() -> Sync:
    sync = Sync()
    sync.min_interval_hours = 3
    sync.time_budget_seconds = 540
    sync.heartbeat_every = 50
    sync.verbose_output = False
    return sync


@pytest.fixture
def cleanup_settings() -> Cleanup:
    cleanup = Cleanup()
    cleanup.interval_hours = 6
    cleanup.fetch_batch_size = 3
    cleanup.delete_batch_size = 50
    return cleanup


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def images() -> FakeImages:
    return FakeImages()


@pytest.fixture
def make_record(feed_settings: Feed) -> Callable[..., FeedRecord]:
    def build(**values: object) -> FeedRecord:
        parser = FeedParser(feed_settings)
        record = parser.parse_record(raw_record(parser.schema, **values), parser.schema)
        assert record is not None
        return record

    return build


@pytest.fixture
def feed_client() -> FakeFeedClient:
    return FakeFeedClient()


@pytest.fixture
def build_page(feed_settings: Feed) -> Callable[[Iterable[Mapping[str, object]]], bytes]:
    def build(records: Iterable[Mapping[str, object]]) -> bytes:
        return raw_page(FeedParser(feed_settings).schema, records)

    return build


@pytest.fixture
def build_sku_page() -> Callable[..., bytes]:
    return sku_page
