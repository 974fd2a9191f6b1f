from __future__ import annotations

import pytest

from siater_api.exceptions import ConfigurationError, FetchError
from siater_data.sync.cleanup import CleanupStateMachine
from siater_data.sync.store import CleanupPhase, CleanupState, InMemoryStateStore


@pytest.fixture
def make_cleaner(feed_client, catalog, cleanup_settings, clock):
    def build(store: InMemoryStateStore) -> CleanupStateMachine:
        return CleanupStateMachine(store, feed_client, catalog, cleanup_settings, clock=clock)

    return build


def test_first_run_starts_a_cycle_and_fetches(make_cleaner, feed_client, build_sku_page) -> None:
    store = InMemoryStateStore()
    feed_client.sku_pages[0] = build_sku_page(["A", "B", "C"])

    step = make_cleaner(store).run()

    state = store.load_cleanup()
    assert step.started_phase is CleanupPhase.NONE
    assert step.phase is CleanupPhase.FETCH
    assert state.fetch_offset == 3
    assert state.supplier_skus == {"A", "B", "C"}
    assert feed_client.sku_requested == [(0, 3)]


def test_fetch_pages_until_a_short_batch(make_cleaner, feed_client, build_sku_page) -> None:
    store = InMemoryStateStore()
    feed_client.sku_pages[0] = build_sku_page(["A", "B", "C"])
    feed_client.sku_pages[3] = build_sku_page(["C", "D"])
    cleaner = make_cleaner(store)

    cleaner.run()
    step = cleaner.run()

    state = store.load_cleanup()
    assert step.phase is CleanupPhase.COMPARE
    assert state.fetch_offset == 0
    assert state.supplier_skus == {"A", "B", "C", "D"}


def test_compare_lists_catalog_skus_missing_from_supplier(make_cleaner, catalog) -> None:
    for sku in ("A", "B", "D", "E"):
        catalog.add(sku)
    store = InMemoryStateStore(cleanup=CleanupState(phase=CleanupPhase.COMPARE, supplier_skus={"A", "B", "C"}))

    step = make_cleaner(store).run()

    state = store.load_cleanup()
    assert step.phase is CleanupPhase.DELETE
    assert state.skus_to_delete == ["D", "E"]
    assert state.supplier_skus == set()
    assert catalog.trash_calls == []


def test_compare_ignores_drafts_and_variations(make_cleaner, catalog, clock) -> None:
    catalog.add("A")
    catalog.add("DRAFT", status="draft")
    catalog.add("A-s", kind="variation")
    store = InMemoryStateStore(cleanup=CleanupState(phase=CleanupPhase.COMPARE, supplier_skus={"A"}))

    step = make_cleaner(store).run()

    assert step.completed is True
    assert store.load_cleanup().phase is CleanupPhase.NONE
    assert store.load_cleanup().last_cycle_completed_at == clock()


def test_delete_drains_in_batches(make_cleaner, catalog, clock) -> None:
    skus = [f"OLD{index}" for index in range(120)]
    for sku in skus:
        catalog.add(sku)
    store = InMemoryStateStore(cleanup=CleanupState(phase=CleanupPhase.DELETE, skus_to_delete=skus))
    cleaner = make_cleaner(store)

    steps = [cleaner.run() for _ in range(3)]

    assert [len(batch) for batch in catalog.trash_calls] == [50, 50, 20]
    assert [step.trashed for step in steps] == [50, 50, 20]
    assert steps[-1].completed is True
    state = store.load_cleanup()
    assert state.phase is CleanupPhase.NONE
    assert state.skus_to_delete == []
    assert state.last_cycle_completed_at == clock()
    assert catalog.cleared == 1
    assert all(item["status"] == "trash" for item in catalog.items.values())


def test_partial_delete_keeps_the_remainder(make_cleaner, catalog) -> None:
    skus = [f"OLD{index}" for index in range(60)]
    for sku in skus:
        catalog.add(sku)
    store = InMemoryStateStore(cleanup=CleanupState(phase=CleanupPhase.DELETE, skus_to_delete=skus))

    make_cleaner(store).run()

    assert store.load_cleanup().skus_to_delete == skus[50:]
    assert store.load_cleanup().phase is CleanupPhase.DELETE


def test_waits_for_the_interval_after_a_cycle(make_cleaner, feed_client, clock) -> None:
    store = InMemoryStateStore(cleanup=CleanupState(last_cycle_completed_at=clock()))
    clock.advance(5 * 60 * 60)

    step = make_cleaner(store).run()

    assert step.phase is CleanupPhase.NONE
    assert feed_client.sku_requested == []


def test_starts_again_once_the_interval_passed(make_cleaner, feed_client, build_sku_page, clock) -> None:
    store = InMemoryStateStore(cleanup=CleanupState(last_cycle_completed_at=clock()))
    clock.advance(6 * 60 * 60)
    feed_client.sku_pages[0] = build_sku_page(["A"])

    step = make_cleaner(store).run()

    assert step.phase is CleanupPhase.COMPARE


def test_fetch_error_retries_from_the_same_state(make_cleaner, feed_client) -> None:
    store = InMemoryStateStore(cleanup=CleanupState(phase=CleanupPhase.FETCH, fetch_offset=6, supplier_skus={"A"}))
    feed_client.sku_pages[6] = FetchError("Received unexpected status code: 502")

    step = make_cleaner(store).run()

    assert step.aborted is False
    assert store.load_cleanup() == CleanupState(phase=CleanupPhase.FETCH, fetch_offset=6, supplier_skus={"A"})


def test_missing_feed_url_aborts_the_cycle(make_cleaner, feed_client) -> None:
    store = InMemoryStateStore(cleanup=CleanupState(phase=CleanupPhase.FETCH, fetch_offset=3, supplier_skus={"A"}))
    feed_client.sku_pages[3] = ConfigurationError("Feed URL is empty")

    step = make_cleaner(store).run()

    assert step.aborted is True
    assert store.load_cleanup() == CleanupState()


def test_empty_sku_feed_aborts_without_deleting(make_cleaner, feed_client, catalog, build_sku_page) -> None:
    catalog.add("A")
    store = InMemoryStateStore()
    feed_client.sku_pages[0] = build_sku_page([])

    step = make_cleaner(store).run()

    assert step.aborted is True
    assert store.load_cleanup().phase is CleanupPhase.NONE
    assert catalog.trash_calls == []


def test_compare_without_supplier_skus_aborts(make_cleaner, catalog) -> None:
    catalog.add("A")
    store = InMemoryStateStore(cleanup=CleanupState(phase=CleanupPhase.COMPARE))

    step = make_cleaner(store).run()

    assert step.aborted is True
    assert store.load_cleanup().skus_to_delete == []
    assert catalog.by_sku("A")["status"] == "publish"


def test_sku_column_is_located_by_header(make_cleaner, feed_client) -> None:
    store = InMemoryStateStore()
    feed_client.sku_pages[0] = b"Descrizione{|}Codice{||}Maglia{|}M1{||}Felpa{|}F2"

    make_cleaner(store).run()

    assert store.load_cleanup().supplier_skus == {"M1", "F2"}


def test_force_start_discards_progress(make_cleaner, clock) -> None:
    store = InMemoryStateStore(
        cleanup=CleanupState(phase=CleanupPhase.DELETE, skus_to_delete=["X"], last_cycle_completed_at=clock())
    )

    make_cleaner(store).force_start()

    assert store.load_cleanup() == CleanupState()


def test_set_interval_has_a_floor_of_one_hour(make_cleaner, cleanup_settings) -> None:
    cleaner = make_cleaner(InMemoryStateStore())

    cleaner.set_interval(0.25)
    assert cleanup_settings.interval_hours == 1

    cleaner.set_interval(12)
    assert cleaner.interval_hours == 12


def test_get_status(make_cleaner, clock) -> None:
    store = InMemoryStateStore(
        cleanup=CleanupState(phase=CleanupPhase.DELETE, skus_to_delete=["X", "Y"], last_cycle_completed_at=clock())
    )
    clock.advance(2 * 60 * 60)

    status = make_cleaner(store).get_status()

    assert status == {
        "phase": "delete",
        "last_complete": store.load_cleanup().last_cycle_completed_at,
        "pending_deletions": 2,
        "hours_until_next": 4.0,
    }


def test_get_status_when_idle_and_never_run(make_cleaner) -> None:
    status = make_cleaner(InMemoryStateStore()).get_status()

    assert status["phase"] == "idle"
    assert status["last_complete"] is None
    assert status["hours_until_next"] == 0.0
