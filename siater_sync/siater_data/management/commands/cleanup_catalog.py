from django.core.management.base import BaseCommand

from siater_api.config import settings
from siater_data.sync.factory import build_cleanup


class Command(BaseCommand):
    help = "Run one step of the catalog cleanup cycle"

    def add_arguments(self, parser) -> None:  # type: ignore[no-untyped-def]
        parser.add_argument(
            "--force",
            action="store_true",
            help="Forget the last completed cycle and discard any partial one before running.",
        )
        parser.add_argument(
            "--interval-hours",
            type=float,
            default=None,
            help="Store a new minimum interval between cycles (at least 1 hour).",
        )

    def handle(self, *args, **options) -> None:
        _ = args
        machine = build_cleanup()

        if options["interval_hours"] is not None:
            machine.set_interval(options["interval_hours"])
            settings.save()

        if options["force"]:
            machine.force_start()

        step = machine.run()
        self.stdout.write(
            f"Cleanup {step.started_phase.value} -> {step.phase.value}: {step.message or 'nothing to do'}"
        )
