"""
Error taxonomy for the conversation API and its mapping onto HTTP responses.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

INVALID_MESSAGE = "Message is required and must be a string"


class ConversationError(Exception):
    """Base exception for the conversation service."""

    def __init__(self, message: str, conversation_id: Optional[str] = None) -> None:
        self.message = message
        self.conversation_id = conversation_id
        super().__init__(message)


class ValidationError(ConversationError):
    """Missing or malformed input."""


class NotFoundError(ConversationError):
    """Unknown conversation identifier."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__("Conversation not found", conversation_id=conversation_id)


class ExternalServiceError(ConversationError):
    """The model provider call failed."""


class StorageError(ConversationError):
    """The conversation store could not be written."""


STATUS_CODES: Dict[Type[ConversationError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ExternalServiceError: 500,
    StorageError: 500,
}


def status_code_for(exc: ConversationError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 500


def error_body(exc: ConversationError, status_code: int) -> Dict[str, Any]:
    if status_code >= 500:
        return {"error": "Internal server error", "details": exc.message}
    body: Dict[str, Any] = {"error": exc.message}
    if exc.conversation_id is not None:
        body["conversationId"] = exc.conversation_id
    return body


def register_error_handlers(app: FastAPI) -> None:
    """Install the exception handlers that turn errors into JSON responses."""

    @app.exception_handler(ConversationError)
    async def conversation_error_handler(request: Request, exc: ConversationError) -> JSONResponse:
        status_code = status_code_for(exc)
        if status_code >= 500:
            logger.error(
                "Error in %s %s: %s", request.method, request.url.path, exc.message, exc_info=exc
            )
        else:
            logger.warning("%s %s -> %s: %s", request.method, request.url.path, status_code, exc.message)
        return JSONResponse(status_code=status_code, content=error_body(exc, status_code))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("%s %s -> 400: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"error": INVALID_MESSAGE})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error in %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc) or "Unknown error"},
        )
