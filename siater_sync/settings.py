import sys
from pathlib import Path

from siater_api.config import settings

SYNC_ROOT = Path(__file__).resolve().parent
if str(SYNC_ROOT) not in sys.path:
    sys.path.insert(0, str(SYNC_ROOT))

SECRET_KEY = settings.django.secret_key
DEBUG = settings.debug
USE_TZ = True
TIME_ZONE = "UTC"

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "siater_data.apps.SiaterDataConfig",
]

MIDDLEWARE: list[str] = []
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

DATABASES = {
    "default": {
        "ENGINE": settings.django.db_engine,
        "NAME": settings.django.db_name,
        "HOST": settings.django.db_host,
        "PORT": settings.django.db_port,
        "USER": settings.django.db_user,
        "PASSWORD": settings.django.db_password,
    }
}

_handlers: dict[str, dict[str, object]] = {
    "console": {"class": "logging.StreamHandler", "formatter": "standard"},
}
if settings.django.log_file:
    _handlers["file"] = {
        "class": "logging.handlers.RotatingFileHandler",
        "filename": str(Path(settings.django.log_file).expanduser()),
        "maxBytes": 1024 * 1024,
        "backupCount": 3,
        "formatter": "standard",
    }

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"},
    },
    "handlers": _handlers,
    "root": {"handlers": list(_handlers), "level": settings.log_level},
}
