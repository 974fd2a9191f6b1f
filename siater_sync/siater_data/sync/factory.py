from typing import Callable

from siater_api.client import FeedClient
from siater_api.config import settings
from siater_api.feed import FeedParser
from siater_data.sync.cleanup import CleanupStateMachine
from siater_data.sync.django_catalog import DjangoCatalog, DjangoImageIngestor
from siater_data.sync.django_store import DjangoStateStore
from siater_data.sync.orchestrator import SyncOrchestrator
from siater_data.sync.reconciler import ProductReconciler
from siater_data.sync.state import SyncState


def build_state() -> SyncState:
    return SyncState(DjangoStateStore(), lock_timeout_seconds=settings.sync.lock_timeout_seconds)


def build_orchestrator(
    output: Callable[[str], None] | None = None, verbose: bool | None = None
) -> SyncOrchestrator:
    catalog = DjangoCatalog()
    return SyncOrchestrator(
        state=build_state(),
        client=FeedClient(),
        parser=FeedParser(),
        reconciler=ProductReconciler(catalog, DjangoImageIngestor()),
        catalog=catalog,
        output=output,
        verbose=verbose,
    )


def build_cleanup() -> CleanupStateMachine:
    return CleanupStateMachine(DjangoStateStore(), FeedClient(), DjangoCatalog())
