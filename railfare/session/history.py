"""Last resolved constraint per chat, kept in the history collection."""

from datetime import datetime, timezone
from typing import Union

from railfare.obs.logger import log_event
from railfare.storage.document_store import CollectionName, DocumentStore
from railfare.types import QueryConstraint

ChatId = Union[int, str]


class ConversationHistory:
    def __init__(self, store: DocumentStore):
        self.store = store

    def save(self, chat_id: ChatId, constraint: QueryConstraint) -> None:
        """Replace the chat's entry with the given constraint."""
        self.store.remove(CollectionName.HISTORY, {"chat_id": str(chat_id)})
        self.store.insert(CollectionName.HISTORY, [{
            "chat_id": str(chat_id),
            "data": constraint.model_dump(mode="json"),
            "date": datetime.now(timezone.utc).isoformat(),
        }])
        log_event("history_saved", chat_id=str(chat_id))

    def get(self, chat_id: ChatId) -> QueryConstraint:
        entries = self.store.find(CollectionName.HISTORY, {"chat_id": str(chat_id)})
        if not entries:
            return QueryConstraint()
        return QueryConstraint.model_validate(entries[0]["data"])

    def clear(self, chat_id: ChatId) -> int:
        return self.store.remove(CollectionName.HISTORY, {"chat_id": str(chat_id)})
