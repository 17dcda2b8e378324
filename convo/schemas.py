"""Request and response bodies of the conversation API."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, StrictStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendMessageIn(CamelModel):
    message: Optional[StrictStr] = None
    conversation_id: Optional[StrictStr] = None


class MessageIn(CamelModel):
    message: Optional[StrictStr] = None


class ConversationReply(CamelModel):
    conversation_id: str
    title: str
    message: str
    response_id: str
    created_at: str
    updated_at: str


class NewConversationReply(ConversationReply):
    is_new_conversation: bool


class ConversationInfoOut(CamelModel):
    conversation_id: str
    title: str
    last_response_id: str
    created_at: str
    updated_at: str


class ConversationList(CamelModel):
    conversations: List[ConversationInfoOut]
    count: int


class ConversationExists(CamelModel):
    conversation_id: str
    title: Optional[str] = None
    exists: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Health(CamelModel):
    status: str
    timestamp: str
    conversation_count: int
