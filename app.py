from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from convo.errors import INVALID_MESSAGE, NotFoundError, ValidationError, register_error_handlers
from convo.llm import get_llm_client
from convo.metrics import MetricsLogger
from convo.safety import redact_secrets
from convo.schemas import (
    ConversationExists,
    ConversationInfoOut,
    ConversationList,
    ConversationReply,
    Health,
    MessageIn,
    NewConversationReply,
    SendMessageIn,
)
from convo.service import ConversationService, utc_now_iso
from convo.settings import Settings, get_settings
from convo.store import JsonFileStore, MemoryStore

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="[%(asctime)s] %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger("convo")

ENDPOINTS = [
    "POST /conversations - Create new conversation or continue existing",
    "POST /conversations/{id}/messages - Send message to specific conversation",
    "GET /conversations - List all conversations",
    "GET /conversations/{id} - Check if conversation exists",
    "GET /health - Health check",
]


def build_service(settings: Settings) -> ConversationService:
    if settings.store_backend == "memory":
        store = MemoryStore()
    else:
        store = JsonFileStore(settings.conversations_file)
    metrics = MetricsLogger(settings.metrics_path) if settings.metrics_path else None
    return ConversationService(
        store=store,
        llm=get_llm_client(settings),
        model=settings.openai_model,
        title_model=settings.title_model,
        metrics=metrics,
    )


def create_app(service: Optional[ConversationService] = None) -> FastAPI:
    service = service or build_service(settings)
    api = FastAPI(title="Conversation API", version="1.0.0")
    api.state.service = service
    register_error_handlers(api)

    def _require_message(message: Optional[str]) -> str:
        if not message:
            raise ValidationError(INVALID_MESSAGE)
        return message

    @api.post("/conversations", response_model=NewConversationReply)
    def create_or_continue(inp: SendMessageIn) -> NewConversationReply:
        """Continue conversationId if given, otherwise start a new conversation."""
        message = _require_message(inp.message)
        logger.info(
            "POST /conversations: conversation=%s message_len=%s preview=%r",
            inp.conversation_id,
            len(message),
            redact_secrets(message)[:40],
        )
        result = service.send_message(inp.conversation_id or None, message)
        return NewConversationReply(
            conversation_id=result.conversation_id,
            title=result.title,
            message=result.output_text,
            response_id=result.response_id,
            is_new_conversation=not inp.conversation_id,
            created_at=result.created_at,
            updated_at=result.updated_at,
        )

    @api.post("/conversations/{conversation_id}/messages", response_model=ConversationReply)
    def send_to_conversation(conversation_id: str, inp: MessageIn) -> ConversationReply:
        message = _require_message(inp.message)
        if not service.conversation_exists(conversation_id):
            raise NotFoundError(conversation_id)

        logger.info(
            "POST /conversations/%s/messages: message_len=%s", conversation_id, len(message)
        )
        result = service.send_message(conversation_id, message)
        return ConversationReply(
            conversation_id=result.conversation_id,
            title=result.title,
            message=result.output_text,
            response_id=result.response_id,
            created_at=result.created_at,
            updated_at=result.updated_at,
        )

    @api.get("/conversations", response_model=ConversationList)
    def list_conversations() -> ConversationList:
        infos = service.get_conversation_infos()
        return ConversationList(
            conversations=[
                ConversationInfoOut(
                    conversation_id=i.conversation_id,
                    title=i.title,
                    last_response_id=i.last_response_id,
                    created_at=i.created_at,
                    updated_at=i.updated_at,
                )
                for i in infos
            ],
            count=len(infos),
        )

    @api.get("/conversations/{conversation_id}", response_model=ConversationExists)
    def get_conversation(conversation_id: str) -> ConversationExists:
        conversation = service.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError(conversation_id)
        return ConversationExists(
            conversation_id=conversation_id,
            title=conversation.title,
            exists=True,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )

    @api.get("/health", response_model=Health)
    def health() -> Health:
        return Health(
            status="ok",
            timestamp=utc_now_iso(),
            conversation_count=service.get_conversation_count(),
        )

    return api


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logger.info("Conversation API server running on port %s", settings.port)
    logger.info("Conversations stored in: %s", app.state.service.db_path or "memory")
    logger.info("Active conversations: %s", app.state.service.get_conversation_count())
    for line in ENDPOINTS:
        logger.info("  %s", line)
    uvicorn.run(app, host=settings.host, port=settings.port)
