from siater_api.config.serializable import Serializable


class Cleanup(Serializable):
    interval_hours: float = 6
    fetch_batch_size: int = 500
    delete_batch_size: int = 50
