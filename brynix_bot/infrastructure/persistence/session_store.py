"""
Session Store - Conversation Links and Mute Flags
==================================================

Binds a WhatsApp conversation to a project spreadsheet and tracks which
conversations asked the bot to stay quiet.

Links survive restarts when the link store is file-backed; mute flags
live in memory unless a persistent store is injected.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from .kv_store import InMemoryStore, KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversationLink:
    """Conversation -> project spreadsheet binding."""
    conversation_id: str
    sheet_id: str
    project_name: str
    updated_at: str = ""


class SessionStore:
    """
    Per-conversation link and mute state.

    Usage:
        store = SessionStore()
        store.set_link("1203@g.us", "1AbC...", "Projeto X")
        store.get_link("1203@g.us").project_name   # "Projeto X"
    """

    def __init__(
        self,
        links: Optional[KeyValueStore] = None,
        mutes: Optional[KeyValueStore] = None,
    ):
        self._links = links if links is not None else InMemoryStore()
        self._mutes = mutes if mutes is not None else InMemoryStore()

    # ── Links ──────────────────────────────────────────────────────

    def get_link(self, conversation_id: str) -> Optional[ConversationLink]:
        record = self._links.get(conversation_id)
        if not record:
            return None
        return self._to_link(conversation_id, record)

    def set_link(self, conversation_id: str, sheet_id: str, project_name: str) -> ConversationLink:
        """Create or overwrite the link for a conversation."""
        record = {
            "sheet_id": sheet_id,
            "project_name": project_name,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self._links.set(conversation_id, record)
        logger.info(f"Linked {conversation_id} -> {sheet_id} ({project_name})")
        return self._to_link(conversation_id, record)

    def remove_link(self, conversation_id: str) -> None:
        self._links.remove(conversation_id)
        logger.info(f"Unlinked {conversation_id}")

    def all_links(self) -> List[ConversationLink]:
        return [
            self._to_link(conversation_id, record)
            for conversation_id, record in self._links.items()
            if record
        ]

    @staticmethod
    def _to_link(conversation_id: str, record) -> ConversationLink:
        # Older files stored the bare sheet id as the value
        if isinstance(record, str):
            return ConversationLink(conversation_id, record, "")
        return ConversationLink(
            conversation_id=conversation_id,
            sheet_id=record.get("sheet_id") or record.get("spreadsheetId", ""),
            project_name=record.get("project_name") or record.get("projectName", ""),
            updated_at=record.get("updated_at") or record.get("updatedAt", ""),
        )

    # ── Mute ───────────────────────────────────────────────────────

    def is_muted(self, conversation_id: str) -> bool:
        return bool(self._mutes.get(conversation_id))

    def set_muted(self, conversation_id: str, muted: bool) -> None:
        if muted:
            self._mutes.set(conversation_id, True)
        else:
            self._mutes.remove(conversation_id)
        logger.info(f"Mute {'on' if muted else 'off'} for {conversation_id}")
