from siater_api.config.serializable import Serializable


class Sync(Serializable):
    min_interval_hours: float = 3
    time_budget_seconds: int = 540
    lock_timeout_seconds: int = 600
    heartbeat_every: int = 50
    verbose_output: bool = False
