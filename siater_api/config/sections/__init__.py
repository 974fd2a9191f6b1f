from .cleanup import Cleanup
from .django import Django
from .feed import Feed
from .sync import Sync

__all__ = ["Cleanup", "Django", "Feed", "Sync"]
