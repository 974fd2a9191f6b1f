import logging

from django.core.management.base import BaseCommand

from siater_data.sync.factory import build_orchestrator
from siater_data.sync.orchestrator import RunOutcome

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Process one page of the supplier feed and advance the sync cursor"

    def add_arguments(self, parser) -> None:  # type: ignore[no-untyped-def]
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Write progress lines to stdout regardless of sync.verbose_output.",
        )

    def handle(self, *args, **options) -> None:
        _ = args
        orchestrator = build_orchestrator(
            output=self.stdout.write,
            verbose=True if options["verbose"] else None,
        )
        report = orchestrator.run()
        if report.outcome is RunOutcome.FAILED:
            self.stderr.write(f"Sync failed: {report.error}")
