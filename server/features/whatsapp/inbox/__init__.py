from __future__ import annotations

from .last_seen import (
    JsonFileKeyValueStore,
    KeyValueStore,
    LastSeenTracker,
    MemoryKeyValueStore,
    device_store_path,
)
from .preview import PREVIEW_MAX_LENGTH, message_preview, truncate_preview
from .reconciler import ContactProfile, ConversationSource, InboxReconciler
from .session import InboxRegistry, InboxSession
from .source import DatabaseConversationSource
from .store import Conversation, ConversationStore, InboxSnapshot, sort_conversations

__all__ = [
    "ContactProfile",
    "Conversation",
    "ConversationSource",
    "ConversationStore",
    "DatabaseConversationSource",
    "InboxReconciler",
    "InboxRegistry",
    "InboxSession",
    "InboxSnapshot",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "LastSeenTracker",
    "MemoryKeyValueStore",
    "PREVIEW_MAX_LENGTH",
    "device_store_path",
    "message_preview",
    "sort_conversations",
    "truncate_preview",
]
