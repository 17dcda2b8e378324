"""
Shared fixtures: a recording fake model client, a store in a temp dir, and
a TestClient wired to a service built from both.
"""

import itertools
import logging
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from convo.errors import ExternalServiceError
from convo.llm import LLMClient, ModelReply, ResponseRequest
from convo.service import ConversationService
from convo.store import JsonFileStore

logging.getLogger("httpx").setLevel(logging.WARNING)


class FakeLLM(LLMClient):
    """Records every request; replies with sequential response ids."""

    def __init__(self, title: str = "Trip Planning Ideas") -> None:
        self.requests: List[ResponseRequest] = []
        self.title = title
        self.fail_chat: Optional[str] = None
        self.fail_title = False
        self._ids = itertools.count(1)

    @property
    def chat_requests(self) -> List[ResponseRequest]:
        return [r for r in self.requests if r.store]

    @property
    def title_requests(self) -> List[ResponseRequest]:
        return [r for r in self.requests if not r.store]

    def create_response(self, request: ResponseRequest) -> ModelReply:
        self.requests.append(request)
        if request.store:
            if self.fail_chat:
                raise ExternalServiceError(self.fail_chat)
            return ModelReply(
                id=f"resp_{next(self._ids)}",
                output_text=f"echo: {request.input}",
                input_tokens=10,
                output_tokens=5,
            )
        if self.fail_title:
            raise RuntimeError("title model unavailable")
        return ModelReply(id=f"resp_title_{next(self._ids)}", output_text=self.title)


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "conversations.json"


@pytest.fixture
def store(store_path):
    return JsonFileStore(str(store_path))


@pytest.fixture
def service(store, llm):
    return ConversationService(store=store, llm=llm, model="gpt-4o-mini")


@pytest.fixture
def client(service):
    from app import create_app

    return TestClient(create_app(service))
