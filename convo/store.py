from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from convo.errors import StorageError

logger = logging.getLogger(__name__)


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


@dataclass
class Conversation:
    last_response_id: str
    title: str
    created_at: str
    updated_at: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "lastResponseId": self.last_response_id,
            "title": self.title,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        # missing or non-string fields load as ""
        return cls(
            last_response_id=_text(data, "lastResponseId"),
            title=_text(data, "title"),
            created_at=_text(data, "createdAt"),
            updated_at=_text(data, "updatedAt"),
        )


class ConversationStore:
    """Whole-mapping store: load everything, save everything."""

    path: Optional[str] = None

    def load(self) -> Dict[str, Conversation]:
        raise NotImplementedError

    def save(self, conversations: Dict[str, Conversation]) -> None:
        raise NotImplementedError


class MemoryStore(ConversationStore):
    """Naive in-memory store keyed by conversation_id."""

    def __init__(self) -> None:
        self._db: Dict[str, Dict[str, str]] = {}

    def load(self) -> Dict[str, Conversation]:
        return {cid: Conversation.from_dict(d) for cid, d in self._db.items()}

    def save(self, conversations: Dict[str, Conversation]) -> None:
        self._db = {cid: c.to_dict() for cid, c in conversations.items()}


class JsonFileStore(ConversationStore):
    """
    Store backed by a single JSON file, rewritten in full on every save.

    Anything that cannot be read back (missing file, bad JSON, wrong shape)
    loads as an empty store. There is no locking: concurrent writers race
    and the last one to finish wins.
    """

    def __init__(self, path: str = "./conversations.json") -> None:
        self.path = os.path.abspath(path)

    def load(self) -> Dict[str, Conversation]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.debug("Starting from empty store (%s): %s", self.path, e)
            return {}

        if not isinstance(raw, dict):
            logger.debug("Ignoring store file %s: top-level value is not an object", self.path)
            return {}

        return {
            cid: Conversation.from_dict(data)
            for cid, data in raw.items()
            if isinstance(data, dict)
        }

    def save(self, conversations: Dict[str, Conversation]) -> None:
        data = {cid: c.to_dict() for cid, c in conversations.items()}
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}") from e
