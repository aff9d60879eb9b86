"""
Alert Notifier - Optional Outbound Webhook
===========================================

Posts lifecycle alerts (online, disconnected, watchdog restarts) to a
webhook such as a Zapier catch hook. When no URL is configured the alert
is only logged. Never raises.
"""

import logging
from typing import Optional, Union

import requests

from ..config import AlertSettings, get_settings

logger = logging.getLogger(__name__)


class AlertNotifier:

    def __init__(self, settings: Optional[AlertSettings] = None, session: Optional[requests.Session] = None):
        settings = settings or get_settings().alerts
        self._url = settings.webhook_url
        self._timeout = settings.timeout_seconds
        self._session = session or requests.Session()

    def send(self, payload: Union[str, dict, None]) -> bool:
        """Post ``payload`` ({"text": ...} for plain strings). Returns True if delivered."""
        if isinstance(payload, str):
            body = {"text": payload}
        else:
            body = payload or {"text": "⚠️ Alerta sem conteúdo"}

        if not self._url:
            logger.info(f"ALERT_WEBHOOK_URL not set; alert: {body}")
            return False

        try:
            response = self._session.post(self._url, json=body, timeout=self._timeout)
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.error(f"Alert webhook error: {e}")
            return False
