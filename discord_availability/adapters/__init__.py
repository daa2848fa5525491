"""
Messaging platform adapters.

Only the platform-neutral interface is exported here; import concrete
adapters from their own modules (e.g. `adapters.discord_adapter`) so the core
never pulls in a platform library.
"""
from .base import AnswerCallback, BaseAdapter, IncomingMessage, MessageCallback, PromptContext, ReplyHandle

__all__ = [
    "AnswerCallback",
    "BaseAdapter",
    "IncomingMessage",
    "MessageCallback",
    "PromptContext",
    "ReplyHandle",
]
