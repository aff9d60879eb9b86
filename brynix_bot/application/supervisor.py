"""
Connection Supervisor - WhatsApp Client Lifecycle
==================================================

Owns the messaging client instance and keeps it alive:

    starting -> qr -> authenticated -> ready
          any state -> disconnected -> safe_reinit()

ARCHITECTURAL DECISION:
- Reinitialization goes through a rate limiter with an injectable clock,
  so a flapping connection cannot thrash the browser
- Teardown errors are logged and ignored; a fresh client is always built
- A watchdog thread polls get_state() and reinitializes on bad states
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from ..infrastructure.alerts import AlertNotifier
from ..infrastructure.config import WhatsAppSettings, get_settings
from ..infrastructure.whatsapp import IncomingMessage, MessagingClient, QrCode
from ..infrastructure.whatsapp.messaging_provider import (
    EVENT_AUTH_FAILURE,
    EVENT_AUTHENTICATED,
    EVENT_DISCONNECTED,
    EVENT_MESSAGE,
    EVENT_QR,
    EVENT_READY,
    STATE_CONFLICT,
    STATE_CONNECTED,
    STATE_UNLAUNCHED,
    STATE_UNPAIRED,
)

logger = logging.getLogger(__name__)

BAD_STATES = frozenset({STATE_CONFLICT, STATE_UNPAIRED, STATE_UNLAUNCHED})


class ConnectionState(Enum):
    STARTING = "starting"
    QR = "qr"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    DISCONNECTED = "disconnected"


class ReinitRateLimiter:
    """
    Allows one acquisition per cooldown window.

    USAGE:
        limiter = ReinitRateLimiter(30)
        if limiter.try_acquire():
            ...  # at most once every 30 seconds
    """

    def __init__(self, cooldown_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._not_before: Optional[float] = None
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        with self._lock:
            now = self._clock()
            if self._not_before is not None and now < self._not_before:
                return False
            self._not_before = now + self.cooldown_seconds
            return True


MessageHandler = Callable[[IncomingMessage, MessagingClient], None]


class ConnectionSupervisor:
    """
    USAGE:
        supervisor = ConnectionSupervisor(WhatsAppWebClient, router.route)
        supervisor.start()
        supervisor.send("1203...@g.us", "Olá!")
    """

    def __init__(
        self,
        client_factory: Callable[[], MessagingClient],
        on_message: Optional[MessageHandler] = None,
        alerts: Optional[AlertNotifier] = None,
        settings: Optional[WhatsAppSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings or get_settings().whatsapp
        self._client_factory = client_factory
        self._on_message = on_message
        self._alerts = alerts or AlertNotifier()
        self._limiter = ReinitRateLimiter(self._settings.reinit_cooldown, clock)

        self.client: Optional[MessagingClient] = None
        self.state = ConnectionState.STARTING
        self.last_qr: Optional[QrCode] = None
        self.reinit_count = 0

        self._stop = threading.Event()
        self._watchdog: Optional[threading.Thread] = None

    # ── Lifecycle ─────────────────────────────────────────────────

    def start(self, watchdog: bool = True) -> None:
        """Build the first client and start the watchdog thread."""
        self._stop.clear()
        self.state = ConnectionState.STARTING
        self.client = self._build_client()
        self.client.initialize()

        if watchdog:
            self._watchdog = threading.Thread(target=self._watchdog_loop, name="wa-watchdog", daemon=True)
            self._watchdog.start()

    def stop(self) -> None:
        self._stop.set()
        if self.client is not None:
            try:
                self.client.destroy()
            except Exception as e:
                logger.warning(f"Error destroying client on shutdown: {e}")
        if self._watchdog and self._watchdog is not threading.current_thread():
            self._watchdog.join(timeout=5)
        self._watchdog = None

    def _build_client(self) -> MessagingClient:
        client = self._client_factory()
        self._wire(client)
        return client

    def _wire(self, client: MessagingClient) -> None:
        client.on(EVENT_QR, self._handle_qr)
        client.on(EVENT_AUTHENTICATED, self._handle_authenticated)
        client.on(EVENT_READY, self._handle_ready)
        client.on(EVENT_AUTH_FAILURE, self._handle_auth_failure)
        client.on(EVENT_DISCONNECTED, self._handle_disconnected)
        if self._on_message is not None:
            client.on(EVENT_MESSAGE, lambda message: self._on_message(message, client))

    def safe_reinit(self, reason: str = "unknown") -> bool:
        """
        Tear down and rebuild the client unless a reinit ran within the cooldown.

        Returns:
            True if a new client was started, False if the request was dropped.
        """
        if not self._limiter.try_acquire():
            logger.info(f"Reinit ({reason}) dropped: inside {self._limiter.cooldown_seconds}s cooldown")
            return False

        logger.warning(f"Reinitializing WhatsApp client ({reason})")
        old, self.client = self.client, None
        if old is not None:
            try:
                old.destroy()
            except Exception as e:
                logger.error(f"Client teardown failed during reinit ({reason}): {e}")

        self.reinit_count += 1
        self.state = ConnectionState.STARTING
        try:
            self.client = self._build_client()
            self.client.initialize()
        except Exception as e:
            logger.error(f"Client initialization failed during reinit ({reason}): {e}")
        return True

    # ── Events ────────────────────────────────────────────────────

    def _handle_qr(self, qr: QrCode) -> None:
        self.last_qr = qr
        self.state = ConnectionState.QR
        logger.info("[WA] QR generated; scan it from /wa-qr")

    def _handle_authenticated(self) -> None:
        self.state = ConnectionState.AUTHENTICATED
        logger.info("[WA] Authenticated")

    def _handle_ready(self) -> None:
        self.state = ConnectionState.READY
        self.last_qr = None
        logger.info("[WA] Ready ✅")
        self._alerts.send("✅ Alice online")

    def _handle_auth_failure(self, reason: str = "") -> None:
        logger.error(f"[WA] auth_failure: {reason}")
        self._alerts.send("⚠️ Falha de auth")
        self.safe_reinit("auth_failure")

    def _handle_disconnected(self, reason: str = "") -> None:
        self.state = ConnectionState.DISCONNECTED
        logger.error(f"[WA] Disconnected: {reason}")
        self._alerts.send("❌ Alice desconectada")
        self.safe_reinit("disconnected")

    # ── Watchdog ──────────────────────────────────────────────────

    def check_health(self) -> None:
        """One watchdog tick."""
        try:
            remote = self.client.get_state() if self.client is not None else None
        except Exception as e:
            logger.error(f"[WA] Watchdog could not read state: {e}")
            self.safe_reinit("watchdog-error")
            return

        if remote is None or remote in BAD_STATES:
            logger.warning(f"[WA] Watchdog saw bad state: {remote}")
            self._alerts.send(f"⚠️ WhatsApp em estado {remote}; reiniciando")
            self.safe_reinit(f"watchdog-{remote}")
        elif remote == STATE_CONNECTED and self.state is not ConnectionState.READY:
            logger.info(f"[WA] Watchdog: client connected, correcting cached state {self.state.value}")
            self.state = ConnectionState.READY

    def _watchdog_loop(self) -> None:
        while not self._stop.wait(self._settings.watchdog_interval):
            self.check_health()

    # ── Outbound / status ─────────────────────────────────────────

    def remote_state(self) -> str:
        """Client-reported state when available, else the cached state."""
        if self.client is not None:
            try:
                remote = self.client.get_state()
            except Exception as e:
                logger.debug(f"Could not read remote state: {e}")
                remote = None
            if remote:
                return remote
        return self.state.value

    def send(self, conversation_id: str, text: str) -> bool:
        if self.client is None:
            logger.warning(f"No client; cannot send to {conversation_id}")
            return False
        return self.client.send_message(conversation_id, text)

    def send_file(self, conversation_id: str, data: bytes, filename: str, mime_type: str) -> bool:
        if self.client is None:
            return False
        return self.client.send_file(conversation_id, data, filename, mime_type)
