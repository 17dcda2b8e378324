"""
Conversation orchestration: chain each user message onto the previous model
response and keep per-conversation metadata in the store.

The store is reloaded at the start of every operation and rewritten in full
after every message. Nothing is cached between calls.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from convo.errors import ValidationError
from convo.llm import LLMClient, ResponseRequest
from convo.metrics import MetricsLogger, Timer, TurnMetrics, estimate_cost_usd
from convo.safety import redact_secrets
from convo.store import Conversation, ConversationStore
from convo.titles import generate_title

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Conversation"


def utc_now_iso() -> str:
    """Current UTC time as e.g. 2026-01-02T03:04:05.678Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class SendMessageResult:
    conversation_id: str
    title: str
    output_text: str
    response_id: str
    created_at: str
    updated_at: str
    is_new_conversation: bool


@dataclass
class ConversationInfo:
    conversation_id: str
    title: str
    last_response_id: str
    created_at: str
    updated_at: str


class ConversationService:
    def __init__(
        self,
        store: ConversationStore,
        llm: LLMClient,
        model: str = "gpt-4o-mini",
        title_model: Optional[str] = None,
        metrics: Optional[MetricsLogger] = None,
    ) -> None:
        self.store = store
        self.llm = llm
        self.model = model
        self.title_model = title_model or model
        self.metrics = metrics

    @property
    def db_path(self) -> Optional[str]:
        return self.store.path

    def send_message(self, conversation_id: Optional[str], user_message: str) -> SendMessageResult:
        """
        Send a message in a (possibly new) chained conversation.

        Pass a falsy conversation_id to start a new conversation; an id is
        generated and a title is requested from the model. The updated
        mapping is persisted before returning.
        """
        if not user_message or not isinstance(user_message, str):
            raise ValidationError("Message is required and must be a string")

        conversations = self.store.load()
        is_new = not conversation_id
        cid = conversation_id or str(uuid.uuid4())
        existing = conversations.get(cid)

        request = ResponseRequest(
            model=self.model,
            input=user_message,
            store=True,
            metadata={"conversation_id": cid},
        )
        if existing and existing.last_response_id:
            request.previous_response_id = existing.last_response_id

        logger.info(
            "Sending message: conversation=%s new=%s chained=%s preview=%r",
            cid,
            is_new,
            bool(request.previous_response_id),
            redact_secrets(user_message)[:60],
        )

        with Timer() as t:
            reply = self.llm.create_response(request)
        logger.info("Model responded: conversation=%s response_id=%s latency_ms=%s", cid, reply.id, t.ms)

        now = utc_now_iso()
        title = existing.title if existing else None
        created_at = existing.created_at if existing else None
        used_fallback = False
        if is_new:
            title, used_fallback = generate_title(self.llm, self.title_model, user_message)
            created_at = now

        conversation = Conversation(
            last_response_id=reply.id,
            title=title or UNTITLED,
            created_at=created_at or now,
            updated_at=now,
        )
        conversations[cid] = conversation
        self.store.save(conversations)

        if self.metrics is not None:
            self.metrics.log(
                TurnMetrics(
                    conversation_id=cid,
                    ts=time.time(),
                    model=self.model,
                    latency_ms=t.ms,
                    input_tokens=reply.input_tokens,
                    output_tokens=reply.output_tokens,
                    cost_usd_est=estimate_cost_usd(self.model, reply.input_tokens, reply.output_tokens),
                    new_conversation=is_new,
                    title_fallback=used_fallback,
                )
            )

        return SendMessageResult(
            conversation_id=cid,
            title=conversation.title,
            output_text=reply.output_text,
            response_id=reply.id,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
            is_new_conversation=is_new,
        )

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self.store.load().get(conversation_id)

    def conversation_exists(self, conversation_id: str) -> bool:
        return conversation_id in self.store.load()

    def get_conversation_title(self, conversation_id: str) -> Optional[str]:
        conversation = self.get_conversation(conversation_id)
        return conversation.title if conversation else None

    def get_conversation_created_at(self, conversation_id: str) -> Optional[str]:
        conversation = self.get_conversation(conversation_id)
        return conversation.created_at if conversation else None

    def get_conversation_updated_at(self, conversation_id: str) -> Optional[str]:
        conversation = self.get_conversation(conversation_id)
        return conversation.updated_at if conversation else None

    def get_conversation_infos(self) -> List[ConversationInfo]:
        return [
            ConversationInfo(
                conversation_id=cid,
                title=c.title,
                last_response_id=c.last_response_id,
                created_at=c.created_at,
                updated_at=c.updated_at,
            )
            for cid, c in self.store.load().items()
        ]

    def get_conversation_ids(self) -> List[str]:
        # backward compatibility with the id-only listing
        return list(self.store.load().keys())

    def get_conversation_count(self) -> int:
        return len(self.store.load())
