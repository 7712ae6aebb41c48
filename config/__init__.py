"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Function to get settings (for dependency injection)
    LARK_MAX_BATCH_SIZE: Provider ceiling for records per write call
"""

from config.settings import settings, get_settings, Settings, LARK_MAX_BATCH_SIZE

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "LARK_MAX_BATCH_SIZE",
]
