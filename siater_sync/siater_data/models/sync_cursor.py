from django.db import models

from siater_data.sync.store import RunStatus


class SyncCursor(models.Model):
    offset = models.IntegerField(default=0)
    last_sync_start = models.DateTimeField(null=True)
    is_syncing = models.BooleanField(default=False)
    lock_held = models.BooleanField(default=False)
    lock_acquired_at = models.DateTimeField(null=True)
    last_run_status = models.CharField(
        max_length=20,
        choices=[(status.value, status.name.title()) for status in RunStatus],
        default=RunStatus.IDLE.value,
    )
    last_run_finished_at = models.DateTimeField(null=True)
    last_error = models.TextField(null=True)
    records_processed = models.BigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Sync Cursor"
        verbose_name_plural = "Sync Cursor"
