from .base import AppSettings

settings = AppSettings.get_instance()

__all__ = ["AppSettings", "settings"]
