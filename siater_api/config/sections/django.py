from siater_api.config.serializable import Serializable


class Django(Serializable):
    secret_key: str = "change-me"
    db_engine: str = "django.db.backends.sqlite3"
    db_name: str = "siater_sync.sqlite3"
    db_host: str = ""
    db_port: str = ""
    db_user: str = ""
    db_password: str = ""
    log_file: str = ""
