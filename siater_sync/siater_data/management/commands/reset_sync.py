from django.core.management.base import BaseCommand

from siater_data.sync.factory import build_state


class Command(BaseCommand):
    help = "Hard reset of the sync cursor and lock (manual recovery)"

    def handle(self, *args, **options) -> None:
        _ = args, options
        build_state().reset()
        self.stdout.write("Sync state reset.")
