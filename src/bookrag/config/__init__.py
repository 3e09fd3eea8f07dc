from bookrag.config.search import SearchSettings
from bookrag.config.settings import Settings, load_settings

__all__ = ["SearchSettings", "Settings", "load_settings"]
