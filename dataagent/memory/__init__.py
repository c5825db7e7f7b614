"""
Conversation memory
"""

from dataagent.memory.multi_turn import MultiTurnContextStore, ConversationTurn, NO_HISTORY

__all__ = ["MultiTurnContextStore", "ConversationTurn", "NO_HISTORY"]
