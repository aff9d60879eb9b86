from .kv_store import KeyValueStore, InMemoryStore, JsonFileStore, SqliteStore, open_store
from .session_store import SessionStore, ConversationLink

__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "JsonFileStore",
    "SqliteStore",
    "open_store",
    "SessionStore",
    "ConversationLink",
]
