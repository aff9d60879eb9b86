"""
Messaging Provider - Abstraction Layer for the WhatsApp Client
===============================================================

The supervisor and router only talk to these interfaces, so the Selenium
implementation can be swapped for another backend (or a fake in tests).

EVENTS (emitted by MessagingClient):
    qr             QrCode            pairing code changed
    authenticated  -                 QR scanned
    ready          -                 chats loaded, messages flowing
    auth_failure   reason: str
    disconnected   reason: str
    message        IncomingMessage
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EVENT_QR = "qr"
EVENT_AUTHENTICATED = "authenticated"
EVENT_READY = "ready"
EVENT_AUTH_FAILURE = "auth_failure"
EVENT_DISCONNECTED = "disconnected"
EVENT_MESSAGE = "message"

EVENTS = (
    EVENT_QR,
    EVENT_AUTHENTICATED,
    EVENT_READY,
    EVENT_AUTH_FAILURE,
    EVENT_DISCONNECTED,
    EVENT_MESSAGE,
)

# States reported by get_state()
STATE_CONNECTED = "CONNECTED"
STATE_OPENING = "OPENING"
STATE_UNPAIRED = "UNPAIRED"
STATE_CONFLICT = "CONFLICT"
STATE_UNLAUNCHED = "UNLAUNCHED"


@dataclass(frozen=True)
class QrCode:
    """Pairing code: raw payload plus a PNG rendering when available."""
    data: str
    png: Optional[bytes] = None


@dataclass(frozen=True)
class MediaPayload:
    data: bytes
    mime_type: str = "application/octet-stream"
    filename: Optional[str] = None


@dataclass
class IncomingMessage(ABC):
    """A message delivered by the messaging client."""
    conversation_id: str
    body: str = ""
    is_group: bool = False
    sender_id: str = ""
    sender_name: str = ""
    mentioned_ids: List[str] = field(default_factory=list)
    has_media: bool = False

    @abstractmethod
    def reply(self, text: str) -> None:
        """Send ``text`` back to the conversation this message came from."""
        ...

    @abstractmethod
    def download_media(self) -> Optional[MediaPayload]:
        """Fetch the attachment bytes; None when nothing can be downloaded."""
        ...


EventHandler = Callable[..., None]


class MessagingClient(ABC):
    """
    Abstract base class for WhatsApp messaging clients.
    Implement this interface to add new messaging backends.
    """

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    def on(self, event: str, handler: EventHandler) -> None:
        """Register ``handler`` for ``event``."""
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event}")
        self._handlers[event].append(handler)

    def emit(self, event: str, *args) -> None:
        """Call every handler of ``event``; a failing handler does not stop the others."""
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception as e:
                logger.exception(f"Handler for '{event}' failed: {e}")

    @abstractmethod
    def initialize(self) -> None:
        """Launch the client; lifecycle events follow asynchronously."""
        ...

    @abstractmethod
    def destroy(self) -> None:
        """Tear the client down and release its resources."""
        ...

    @abstractmethod
    def get_state(self) -> Optional[str]:
        """Connection state as reported by the backend (None if unknown)."""
        ...

    @abstractmethod
    def send_message(self, conversation_id: str, text: str) -> bool:
        ...

    @abstractmethod
    def send_file(
        self,
        conversation_id: str,
        data: bytes,
        filename: str,
        mime_type: str,
        caption: str = "",
    ) -> bool:
        ...

    @property
    def self_id(self) -> str:
        """The bot's own WhatsApp id (e.g. ``5511...@c.us``), empty when unknown."""
        return ""

    @property
    def push_name(self) -> str:
        """The bot's display name, empty when unknown."""
        return ""
