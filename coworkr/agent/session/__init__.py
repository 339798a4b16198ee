from .history import ConversationHistory
from .history import ConversationTurn
from .kv_store import InMemoryKeyValueStore

__all__ = [
    "ConversationHistory",
    "ConversationTurn",
    "InMemoryKeyValueStore",
]
