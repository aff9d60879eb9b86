"""
WhatsApp Client - Selenium-Based WhatsApp Web Automation
=========================================================

Drives WhatsApp Web in Chrome and turns what it sees into MessagingClient
events. A background thread polls the page:

- QR visible        -> "qr" (payload + PNG snapshot of the canvas)
- chat list visible -> "authenticated" / "ready", then unread chats are
                       opened and new incoming messages emitted
- browser gone      -> "disconnected"

The Chrome profile lives in WA_SESSION_PATH so pairing survives restarts.
All driver access is serialized with a lock: the poll thread, the
supervisor watchdog and the scheduler share one browser.
"""

import base64
import hashlib
import logging
import os
import random
import re
import tempfile
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from selenium import webdriver
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.support.ui import WebDriverWait
from selenium.webdriver.support import expected_conditions as EC
from selenium.common.exceptions import (
    NoSuchElementException,
    TimeoutException,
    WebDriverException,
    StaleElementReferenceException,
)

try:
    from webdriver_manager.chrome import ChromeDriverManager
except ImportError:
    ChromeDriverManager = None

from ..config import WhatsAppSettings, get_settings
from .messaging_provider import (
    EVENT_AUTHENTICATED,
    EVENT_DISCONNECTED,
    EVENT_MESSAGE,
    EVENT_QR,
    EVENT_READY,
    STATE_CONFLICT,
    STATE_CONNECTED,
    STATE_OPENING,
    STATE_UNLAUNCHED,
    STATE_UNPAIRED,
    IncomingMessage,
    MediaPayload,
    MessagingClient,
    QrCode,
)

logger = logging.getLogger(__name__)

WHATSAPP_URL = "https://web.whatsapp.com/"

# data-id of a message row: "<fromMe>_<chatJid>_<msgId>[_<participantJid>]"
_DATA_ID = re.compile(r"^(true|false)_([^_]+@[a-z.]+)_([^_]+)(?:_(.+@[a-z.]+))?$")

# data-pre-plain-text: "[10:32, 21/09/2025] Ana Souza: "
_PRE_PLAIN_AUTHOR = re.compile(r"\]\s*(.*?):\s*$")

_BLOB_TO_BASE64_JS = """
const src = arguments[0];
const done = arguments[arguments.length - 1];
fetch(src)
  .then(r => r.blob())
  .then(blob => {
    const reader = new FileReader();
    reader.onloadend = () => done({data: reader.result, type: blob.type});
    reader.readAsDataURL(blob);
  })
  .catch(() => done(null));
"""


class WhatsAppClientError(Exception):
    """Base exception for WhatsApp client errors."""
    pass


@dataclass
class WhatsAppWebMessage(IncomingMessage):
    """Incoming message read from the WhatsApp Web DOM."""
    message_id: str = ""
    chat_title: str = ""
    client: Optional["WhatsAppWebClient"] = field(default=None, repr=False, compare=False)

    def reply(self, text: str) -> None:
        if not self.client or not self.client.send_message(self.conversation_id, text):
            raise WhatsAppClientError(f"Could not reply in {self.chat_title or self.conversation_id}")

    def download_media(self) -> Optional[MediaPayload]:
        if not self.client or not self.has_media:
            return None
        return self.client.download_media(self.conversation_id, self.message_id)


class WhatsAppWebClient(MessagingClient):
    """
    Selenium-based WhatsApp Web client.
    """

    # Attribute-based selectors are the most stable across WhatsApp Web releases
    SELECTORS = {
        "qr_container": "div[data-ref]",
        "qr_canvas": 'canvas[aria-label*="QR"], canvas[aria-label*="Scan"]',
        "chat_list": "#pane-side",
        "search_box": 'div[contenteditable="true"][data-tab="3"]',
        "message_input": 'footer div[contenteditable="true"]',
        "conversation_title": "#main header span[dir='auto']",
        "message_row": "#main div[data-id]",
        "unread_badge": (
            'span[aria-label*="unread message"], '
            'span[aria-label*="mensagem não lida"], '
            'span[aria-label*="mensagens não lidas"], '
            'span[data-testid="icon-unread-count"]'
        ),
        "attach_button": (
            'span[data-icon="plus"], span[data-icon="attach-menu-plus"], '
            'span[data-icon="clip"], div[title="Attach"], div[title="Anexar"]'
        ),
        "file_input": 'input[type="file"]',
        "send_button": 'span[data-icon="send"], span[data-icon="wds-ic-send-filled"]',
        "conflict_button": 'div[role="button"], button',
        "mention": "[data-jid]",
        "media": (
            'img[src^="blob:"], span[data-icon="audio-play"], span[data-icon="ptt-play"], '
            'span[data-icon^="document"], div[data-testid="document-thumb"]'
        ),
    }

    TEXT_SELECTORS = [
        "span.selectable-text.copyable-text > span",
        "span.selectable-text.copyable-text",
        "span.selectable-text > span",
        "span.selectable-text",
        'span[dir="ltr"]',
    ]

    CONFLICT_INDICATORS = [
        "whatsapp is open in another window",
        "whatsapp está aberto em outra janela",
        "use here",
        "usar aqui",
    ]

    MAX_REMEMBERED_IDS = 5000
    MAX_CHATS_PER_TICK = 5

    def __init__(self, settings: Optional[WhatsAppSettings] = None):
        super().__init__()
        self._settings = settings or get_settings().whatsapp
        self.driver: Optional[webdriver.Chrome] = None

        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._phase: Optional[str] = None
        self._last_qr: Optional[str] = None
        self._self_id = ""
        self._push_name = ""

        self._seen_order: deque = deque(maxlen=self.MAX_REMEMBERED_IDS)
        self._seen: set = set()
        self._titles: Dict[str, str] = {}

    # ── Lifecycle ─────────────────────────────────────────────────

    def _create_driver(self) -> webdriver.Chrome:
        """Create and configure Chrome WebDriver."""
        options = webdriver.ChromeOptions()

        if self._settings.headless:
            options.add_argument("--headless=new")
            options.add_argument("--window-size=1280,900")
        else:
            options.add_argument("--start-maximized")

        options.add_argument("--disable-gpu")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument("--disable-setuid-sandbox")
        options.add_argument("--no-zygote")

        profile_dir = os.path.abspath(str(self._settings.session_path))
        os.makedirs(profile_dir, exist_ok=True)
        options.add_argument(f"--user-data-dir={profile_dir}")
        logger.info(f"Using Chrome profile at: {profile_dir}")

        if ChromeDriverManager:
            service = ChromeService(ChromeDriverManager().install())
            return webdriver.Chrome(service=service, options=options)
        else:
            return webdriver.Chrome(options=options)

    def initialize(self) -> None:
        """Launch the browser, open WhatsApp Web and start polling."""
        with self._lock:
            self._stop.clear()
            self.driver = self._create_driver()
            self.driver.set_page_load_timeout(self._settings.page_load_timeout)
            self.driver.get(WHATSAPP_URL)
            logger.info("Opened WhatsApp Web")

        self._thread = threading.Thread(target=self._run, name="whatsapp-poll", daemon=True)
        self._thread.start()

    def destroy(self) -> None:
        """Stop polling and close the browser."""
        self._stop.set()
        with self._lock:
            driver, self.driver = self.driver, None
            self._phase = None
            if driver is not None:
                try:
                    driver.quit()
                    logger.info("Browser closed")
                except WebDriverException as e:
                    logger.debug(f"Error closing browser: {e}")

        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=10)
        self._thread = None

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                for message in self._tick():
                    self.emit(EVENT_MESSAGE, message)
            except WebDriverException as e:
                if self._stop.is_set():
                    break
                logger.error(f"Browser session lost: {e}")
                self.emit(EVENT_DISCONNECTED, "BROWSER_CLOSED")
                break
            except Exception as e:
                logger.exception(f"WhatsApp poll error: {e}")
            self._stop.wait(self._settings.poll_interval)

    def _tick(self) -> List[WhatsAppWebMessage]:
        """One poll of the page. Lifecycle events are emitted here; messages are returned."""
        with self._lock:
            if self.driver is None:
                return []
            state = self._read_state()

            if state == STATE_UNPAIRED:
                if self._phase == "ready":
                    self._phase = None
                    self.emit(EVENT_DISCONNECTED, "LOGOUT")
                qr = self._read_qr()
                if qr and qr.data != self._last_qr:
                    self._last_qr = qr.data
                    self._phase = "qr"
                    logger.info("QR code generated")
                    self.emit(EVENT_QR, qr)
                return []

            if state == STATE_CONFLICT:
                self._take_over()
                return []

            if state != STATE_CONNECTED:
                return []

            if self._phase != "ready":
                if self._phase == "qr":
                    self.emit(EVENT_AUTHENTICATED)
                self._phase = "ready"
                self._load_identity()
                logger.info("WhatsApp Web ready")
                self.emit(EVENT_READY)

            return self._collect_incoming()

    # ── State ─────────────────────────────────────────────────────

    def _exists(self, selector: str) -> bool:
        return bool(self.driver.find_elements(By.CSS_SELECTOR, selector))

    def _read_state(self) -> str:
        if self._exists(self.SELECTORS["chat_list"]):
            return STATE_CONNECTED
        if self._exists(self.SELECTORS["qr_container"]) or self._exists(self.SELECTORS["qr_canvas"]):
            return STATE_UNPAIRED
        try:
            body_text = self.driver.find_element(By.TAG_NAME, "body").text.lower()
        except NoSuchElementException:
            return STATE_OPENING
        if any(indicator in body_text for indicator in self.CONFLICT_INDICATORS):
            return STATE_CONFLICT
        return STATE_OPENING

    def get_state(self) -> Optional[str]:
        """CONNECTED / OPENING / UNPAIRED / CONFLICT / UNLAUNCHED, None when the browser is unreachable."""
        with self._lock:
            if self.driver is None:
                return STATE_UNLAUNCHED
            try:
                return self._read_state()
            except WebDriverException as e:
                logger.warning(f"Could not read WhatsApp state: {e}")
                return None

    def _read_qr(self) -> Optional[QrCode]:
        containers = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["qr_container"])
        canvases = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["qr_canvas"])
        try:
            data = containers[0].get_attribute("data-ref") if containers else ""
            target = canvases[0] if canvases else (containers[0] if containers else None)
            png = target.screenshot_as_png if target is not None else None
        except StaleElementReferenceException:
            return None
        if not data and png:
            data = hashlib.sha1(png).hexdigest()
        return QrCode(data=data, png=png) if data else None

    def _take_over(self) -> None:
        """Click "Use here" when another WhatsApp Web session holds the account."""
        for button in self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["conflict_button"]):
            try:
                if button.text.strip().lower() in ("use here", "usar aqui"):
                    button.click()
                    logger.warning("Session conflict: took over from another window")
                    return
            except StaleElementReferenceException:
                continue

    def _load_identity(self) -> None:
        try:
            wid = self.driver.execute_script(
                "return window.localStorage.getItem('last-wid-md')"
                " || window.localStorage.getItem('last-wid') || '';"
            ) or ""
            name = self.driver.execute_script(
                "return window.localStorage.getItem('last-pushname') || '';"
            ) or ""
        except WebDriverException as e:
            logger.debug(f"Could not read own identity: {e}")
            return
        wid = wid.strip('"')
        # Multi-device ids carry a device suffix: "5511...:12@c.us"
        self._self_id = re.sub(r":\d+@", "@", wid)
        self._push_name = name.strip('"')

    @property
    def self_id(self) -> str:
        return self._self_id

    @property
    def push_name(self) -> str:
        return self._push_name

    # ── Reading ───────────────────────────────────────────────────

    def _random_delay(self, min_s: float = 0.3, max_s: float = 1.0) -> None:
        """Add human-like random delay."""
        time.sleep(random.uniform(min_s, max_s))

    def _remember(self, message_id: str) -> bool:
        """Record a message id; False if it was already seen."""
        if message_id in self._seen:
            return False
        if len(self._seen_order) == self._seen_order.maxlen:
            self._seen.discard(self._seen_order[0])
        self._seen_order.append(message_id)
        self._seen.add(message_id)
        return True

    def _unread_chats(self) -> List[tuple]:
        """(row element, unread count) for chats with an unread badge."""
        chats = []
        for badge in self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["unread_badge"]):
            try:
                row = badge.find_element(
                    By.XPATH, './ancestor::div[@role="listitem" or @role="row"][1]'
                )
                count_text = re.sub(r"\D", "", badge.text or "")
                chats.append((row, int(count_text) if count_text else 1))
            except (NoSuchElementException, StaleElementReferenceException):
                continue
        return chats[: self.MAX_CHATS_PER_TICK]

    def _current_title(self) -> str:
        titles = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["conversation_title"])
        return titles[0].text.strip() if titles else ""

    def _collect_incoming(self) -> List[WhatsAppWebMessage]:
        messages = []
        for row, unread in self._unread_chats():
            try:
                row.click()
            except (StaleElementReferenceException, WebDriverException):
                continue
            self._random_delay(0.8, 1.5)

            title = self._current_title()
            rows = self.driver.find_elements(By.CSS_SELECTOR, self.SELECTORS["message_row"])
            incoming = [r for r in rows if (r.get_attribute("data-id") or "").startswith("false_")]

            for element in incoming[-unread:]:
                message = self._parse_message(element, title)
                if message and self._remember(message.message_id):
                    messages.append(message)
        return messages

    def _extract_text(self, element) -> str:
        """Extract text content from a message element."""
        for selector in self.TEXT_SELECTORS:
            try:
                for text_el in element.find_elements(By.CSS_SELECTOR, selector):
                    text = text_el.text.strip()
                    if text:
                        return text
            except (NoSuchElementException, StaleElementReferenceException):
                continue
        return ""

    def _parse_message(self, element, chat_title: str) -> Optional[WhatsAppWebMessage]:
        try:
            data_id = element.get_attribute("data-id") or ""
            match = _DATA_ID.match(data_id)
            if not match:
                return None
            _, chat_jid, _, participant = match.groups()

            sender_name = ""
            pre = element.find_elements(By.CSS_SELECTOR, "div[data-pre-plain-text]")
            if pre:
                author = _PRE_PLAIN_AUTHOR.search(pre[0].get_attribute("data-pre-plain-text") or "")
                sender_name = author.group(1) if author else ""

            mentions = [
                m.get_attribute("data-jid")
                for m in element.find_elements(By.CSS_SELECTOR, self.SELECTORS["mention"])
                if m.get_attribute("data-jid")
            ]
            has_media = bool(element.find_elements(By.CSS_SELECTOR, self.SELECTORS["media"]))
            body = self._extract_text(element)
        except StaleElementReferenceException:
            return None

        if chat_title:
            self._titles[chat_jid] = chat_title

        return WhatsAppWebMessage(
            conversation_id=chat_jid,
            body=body,
            is_group=chat_jid.endswith("@g.us"),
            sender_id=participant or chat_jid,
            sender_name=sender_name or chat_title,
            mentioned_ids=mentions,
            has_media=has_media,
            message_id=data_id,
            chat_title=chat_title,
            client=self,
        )

    def download_media(self, conversation_id: str, message_id: str) -> Optional[MediaPayload]:
        """Read a blob-backed attachment (images, voice notes) as bytes."""
        with self._lock:
            if self.driver is None or not self.open_chat(conversation_id):
                return None
            try:
                element = self.driver.find_element(By.CSS_SELECTOR, f'div[data-id="{message_id}"]')
                blobs = element.find_elements(By.CSS_SELECTOR, 'img[src^="blob:"], audio[src^="blob:"]')
                if not blobs:
                    logger.warning(f"No downloadable media in {message_id}")
                    return None
                result = self.driver.execute_async_script(_BLOB_TO_BASE64_JS, blobs[0].get_attribute("src"))
            except (NoSuchElementException, WebDriverException) as e:
                logger.error(f"Media download failed: {e}")
                return None

        if not result or not result.get("data"):
            return None
        _, _, encoded = result["data"].partition(",")
        return MediaPayload(
            data=base64.b64decode(encoded),
            mime_type=result.get("type") or "application/octet-stream",
        )

    # ── Sending ───────────────────────────────────────────────────

    def open_chat(self, conversation_id: str) -> bool:
        """Open a chat by id (resolved to its title) or by phone number / name."""
        target = self._titles.get(conversation_id) or conversation_id.split("@")[0]
        if self._current_title() == target:
            return True

        try:
            search_box = WebDriverWait(self.driver, 10).until(
                EC.element_to_be_clickable((By.CSS_SELECTOR, self.SELECTORS["search_box"]))
            )
            search_box.click()
            search_box.send_keys(Keys.CONTROL + "a")
            search_box.send_keys(Keys.BACKSPACE)
            self.driver.execute_script("document.execCommand('insertText', false, arguments[0]);", target)
            self._random_delay(1.0, 2.0)
            search_box.send_keys(Keys.ENTER)

            WebDriverWait(self.driver, 10).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, self.SELECTORS["message_input"]))
            )
            logger.debug(f"Chat opened: {target}")
            return True
        except (TimeoutException, WebDriverException) as e:
            logger.error(f"Failed to open chat {target}: {e}")
            return False

    def send_message(self, conversation_id: str, text: str) -> bool:
        """Send a (multi-line) text message."""
        with self._lock:
            if self.driver is None or not self.open_chat(conversation_id):
                return False
            try:
                input_box = self.driver.find_element(By.CSS_SELECTOR, self.SELECTORS["message_input"])
                input_box.click()
                lines = text.split("\n")
                for index, line in enumerate(lines):
                    # insertText handles emoji, which ChromeDriver cannot type
                    if line:
                        self.driver.execute_script(
                            "document.execCommand('insertText', false, arguments[0]);", line
                        )
                    if index < len(lines) - 1:
                        input_box.send_keys(Keys.SHIFT, Keys.ENTER)
                self._random_delay(0.2, 0.5)
                input_box.send_keys(Keys.ENTER)
                logger.info(f"Sent message to {conversation_id}: {text[:50]}...")
                return True
            except WebDriverException as e:
                logger.error(f"Failed to send message: {e}")
                return False

    def send_file(
        self,
        conversation_id: str,
        data: bytes,
        filename: str,
        mime_type: str,
        caption: str = "",
    ) -> bool:
        """Attach a file through the hidden file input and send it."""
        suffix = os.path.splitext(filename)[1] or ".bin"
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as fh:
            fh.write(data)
            path = fh.name

        try:
            with self._lock:
                if self.driver is None or not self.open_chat(conversation_id):
                    return False
                try:
                    self.driver.find_element(By.CSS_SELECTOR, self.SELECTORS["attach_button"]).click()
                    self._random_delay(0.5, 1.0)
                    self.driver.find_element(By.CSS_SELECTOR, self.SELECTORS["file_input"]).send_keys(path)
                    send = WebDriverWait(self.driver, 20).until(
                        EC.element_to_be_clickable((By.CSS_SELECTOR, self.SELECTORS["send_button"]))
                    )
                    if caption:
                        self.driver.execute_script(
                            "document.execCommand('insertText', false, arguments[0]);", caption
                        )
                    send.click()
                    logger.info(f"Sent file {filename} ({mime_type}) to {conversation_id}")
                    return True
                except (TimeoutException, WebDriverException) as e:
                    logger.error(f"Failed to send file {filename}: {e}")
                    return False
        finally:
            os.unlink(path)
