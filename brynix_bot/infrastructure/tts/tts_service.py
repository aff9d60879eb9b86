"""
Text-to-Speech - Google Cloud TTS (pt-BR voice notes)
======================================================

Calls the Text-to-Speech REST API with the same service account used for
Sheets. Returns MP3 bytes, or None when TTS is unavailable.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Optional

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from ..config import Settings, get_settings
from ..sheets import SheetsError, parse_service_account

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


@dataclass(frozen=True)
class AudioClip:
    data: bytes
    mime_type: str = "audio/mpeg"
    filename: str = "audio.mp3"


class TextToSpeechService:
    """
    USAGE:
        tts = TextToSpeechService()
        clip = tts.synthesize("Resumo diário do projeto X")
    """

    def __init__(self, settings: Optional[Settings] = None, session=None):
        settings = settings or get_settings()
        self._tts = settings.tts
        self._sa_json = settings.google.service_account_json
        self._session = session

        if not self._sa_json:
            logger.warning("No GOOGLE_SA_JSON set. Text-to-speech is disabled.")

    def _get_session(self):
        if self._session is None:
            info = parse_service_account(self._sa_json)
            credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
            self._session = AuthorizedSession(credentials)
        return self._session

    def synthesize(self, text: str, voice: Optional[str] = None) -> Optional[AudioClip]:
        if not self._sa_json and self._session is None:
            return None

        voice_name = (voice or self._tts.voice).strip()
        # Voice names start with the language code, e.g. "pt-BR-Neural2-A"
        language_code = "-".join(voice_name.split("-")[:2]) if voice_name.count("-") >= 2 else "pt-BR"

        payload = {
            "input": {"text": str(text or "")},
            "voice": {"languageCode": language_code, "name": voice_name, "ssmlGender": "FEMALE"},
            "audioConfig": {
                "audioEncoding": "MP3",
                "speakingRate": self._tts.speaking_rate,
                "pitch": self._tts.pitch,
            },
        }

        try:
            response = self._get_session().post(self._tts.api_url, json=payload)
            response.raise_for_status()
            content = response.json().get("audioContent")
        except (requests.RequestException, GoogleAuthError, SheetsError, ValueError) as e:
            logger.error(f"TTS synthesize error: {e}")
            return None

        if not content:
            return None
        return AudioClip(data=base64.b64decode(content))
