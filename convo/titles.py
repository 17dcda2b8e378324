from __future__ import annotations

import logging
import re
from typing import Tuple

from convo.llm import LLMClient, ResponseRequest
from convo.safety import redact_secrets

logger = logging.getLogger(__name__)

MAX_TITLE_LEN = 50
FALLBACK_WORDS = 4
FALLBACK_MAX_LEN = 20

_EDGE_QUOTES_RE = re.compile(r"^[\"']|[\"']$")


def title_prompt(user_message: str) -> str:
    return (
        "Generate a short, descriptive title (3-6 words) for a conversation that starts "
        f'with this message: "{user_message}". Only return the title, nothing else.'
    )


def clean_title(raw: str) -> str:
    """Drop one leading and one trailing quote, cap at 50 chars."""
    return _EDGE_QUOTES_RE.sub("", raw.strip())[:MAX_TITLE_LEN]


def fallback_title(user_message: str) -> str:
    words = " ".join(user_message.split(" ")[:FALLBACK_WORDS])
    if len(words) > FALLBACK_MAX_LEN:
        return words[:FALLBACK_MAX_LEN] + "..."
    return words


def generate_title(llm: LLMClient, model: str, user_message: str) -> Tuple[str, bool]:
    """
    Ask the model for a title for a new conversation.

    Returns:
        (title, used_fallback)
    """
    try:
        reply = llm.create_response(
            ResponseRequest(model=model, input=title_prompt(user_message), store=False)
        )
        return clean_title(reply.output_text), False
    except Exception as e:
        logger.warning(
            "Error generating title for %r, using fallback: %s",
            redact_secrets(user_message)[:80],
            e,
        )
        return fallback_title(user_message), True
