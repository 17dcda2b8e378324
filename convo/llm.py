from __future__ import annotations

import logging
import re
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional

from convo.errors import ExternalServiceError
from convo.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ResponseRequest:
    model: str
    input: str
    store: bool = True
    metadata: Optional[Dict[str, str]] = None
    previous_response_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "input": self.input,
            "store": self.store,
        }
        if self.metadata:
            payload["metadata"] = self.metadata
        if self.previous_response_id:
            payload["previous_response_id"] = self.previous_response_id
        return payload


@dataclass
class ModelReply:
    id: str
    output_text: str
    input_tokens: int = 0
    output_tokens: int = 0


class LLMClient:
    def create_response(self, request: ResponseRequest) -> ModelReply:
        raise NotImplementedError


# ---------------------------
# Helpers (mock mode)
# ---------------------------

_QUOTED_RE = re.compile(r'message:\s*"(.*)"\.\s*Only return the title', re.DOTALL)


def _mock_title(prompt: str) -> str:
    m = _QUOTED_RE.search(prompt)
    text = m.group(1) if m else prompt
    words = re.findall(r"[A-Za-z0-9']+", text)[:5]
    return " ".join(w.capitalize() for w in words) or "Mock Conversation"


class MockLLMClient(LLMClient):
    """
    Offline stand-in for the provider. Issues fresh response ids and
    remembers the input behind the most recent ones so continuation can be
    demonstrated. Only the last MAX_REMEMBERED ids are kept.
    """

    MAX_REMEMBERED = 1000

    def __init__(self) -> None:
        self._inputs: "OrderedDict[str, str]" = OrderedDict()

    def create_response(self, request: ResponseRequest) -> ModelReply:
        if not request.store:
            text = _mock_title(request.input)
            return ModelReply(id=f"resp_mock_{uuid.uuid4().hex}", output_text=text)

        earlier = self._inputs.get(request.previous_response_id or "")
        response_id = f"resp_mock_{uuid.uuid4().hex}"
        self._inputs[response_id] = request.input
        while len(self._inputs) > self.MAX_REMEMBERED:
            self._inputs.popitem(last=False)

        if earlier is not None:
            text = f"Mock mode is ON. You said: {request.input}\nEarlier you said: {earlier}"
        else:
            text = f"Mock mode is ON. You said: {request.input}"

        return ModelReply(
            id=response_id,
            output_text=text,
            input_tokens=max(1, len(request.input.split()) + len((earlier or "").split())),
            output_tokens=max(1, len(text.split())),
        )


# ---------------------------
# Real mode
# ---------------------------

class OpenAIResponsesClient(LLMClient):
    """Calls the OpenAI Responses API; one attempt per call."""

    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            from openai import OpenAI  # imported only if needed

            self._client = OpenAI(max_retries=0)
        return self._client

    def create_response(self, request: ResponseRequest) -> ModelReply:
        from openai import OpenAIError

        payload = request.to_payload()
        try:
            resp = self.client.responses.create(**payload)
        except OpenAIError as e:
            raise ExternalServiceError(str(e) or e.__class__.__name__) from e

        usage = getattr(resp, "usage", None)
        return ModelReply(
            id=resp.id,
            output_text=resp.output_text or "",
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )


# ---------------------------
# Public entrypoint
# ---------------------------

def get_llm_client(settings: Settings) -> LLMClient:
    """
    Switch between REAL OpenAI mode and MOCK mode.
    Set MOCK_MODE=1 to avoid calling OpenAI.
    """
    if settings.mock_mode:
        logger.info("MOCK_MODE=1: model calls are served locally")
        return MockLLMClient()
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; model calls will fail")
    return OpenAIResponsesClient()
