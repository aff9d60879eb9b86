from .messaging_provider import (
    EVENTS,
    IncomingMessage,
    MediaPayload,
    MessagingClient,
    QrCode,
)

__all__ = ["EVENTS", "IncomingMessage", "MediaPayload", "MessagingClient", "QrCode"]
