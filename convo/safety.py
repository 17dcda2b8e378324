from __future__ import annotations

import re


# ---- Secret redaction patterns ----
SECRET_PATTERNS = [
    re.compile(r"sk-[A-Za-z0-9_\-]{20,}", re.IGNORECASE),
    re.compile(r"Bearer\s+[A-Za-z0-9_\-.=]{20,}", re.IGNORECASE),
]


# ---- Redact secrets before logging ----
def redact_secrets(text: str) -> str:
    if not text:
        return text
    out = text
    for p in SECRET_PATTERNS:
        out = p.sub("[REDACTED_SECRET]", out)
    return out
