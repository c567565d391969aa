from .settings import LogLevel, SessionGuardSettings, StorageKeySettings, get_settings, reset_settings

__all__ = [
    "LogLevel",
    "SessionGuardSettings",
    "StorageKeySettings",
    "get_settings",
    "reset_settings",
]
