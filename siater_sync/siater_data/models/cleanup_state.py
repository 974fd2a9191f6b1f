from django.db import models

from siater_data.sync.store import CleanupPhase


class CleanupCycleState(models.Model):
    phase = models.CharField(
        max_length=10,
        choices=[(phase.value, phase.name.title()) for phase in CleanupPhase],
        default=CleanupPhase.NONE.value,
    )
    fetch_offset = models.IntegerField(default=0)
    supplier_skus = models.JSONField(default=list)
    skus_to_delete = models.JSONField(default=list)
    last_cycle_completed_at = models.DateTimeField(null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Cleanup Cycle State"
        verbose_name_plural = "Cleanup Cycle State"
