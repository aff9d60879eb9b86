from .settings import (
    Settings,
    WhatsAppSettings,
    BotSettings,
    LLMSettings,
    GoogleSettings,
    TTSSettings,
    AlertSettings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "Settings",
    "WhatsAppSettings",
    "BotSettings",
    "LLMSettings",
    "GoogleSettings",
    "TTSSettings",
    "AlertSettings",
    "StorageSettings",
    "get_settings",
]
