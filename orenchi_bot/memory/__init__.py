from .history import ConversationHistory, ConversationTurn
from .personality_store import PersonalityStore, SQLitePersonalityStore

__all__ = ["ConversationHistory", "ConversationTurn", "PersonalityStore", "SQLitePersonalityStore"]
