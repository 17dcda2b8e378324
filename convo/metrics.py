from __future__ import annotations

import json
import logging
import os
import re
import time
from dataclasses import asdict, dataclass
from typing import Dict, Tuple

logger = logging.getLogger(__name__)

# USD per 1M tokens: (input, output)
PRICING_PER_1M: Dict[str, Tuple[float, float]] = {
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "gpt-4.1-mini": (0.40, 1.60),
}

_DATED_SUFFIX_RE = re.compile(r"-\d{4}-\d{2}-\d{2}$")


def price_key(model: str) -> str:
    """gpt-4o-mini-2024-07-18 -> gpt-4o-mini"""
    return _DATED_SUFFIX_RE.sub("", model)


def estimate_cost_usd(model: str, input_tokens: int, output_tokens: int) -> float:
    input_rate, output_rate = PRICING_PER_1M.get(price_key(model), (0.0, 0.0))
    return (input_tokens * input_rate + output_tokens * output_rate) / 1_000_000


@dataclass
class TurnMetrics:
    conversation_id: str
    ts: float
    model: str
    latency_ms: int
    input_tokens: int
    output_tokens: int
    cost_usd_est: float
    new_conversation: bool = False
    title_fallback: bool = False


class MetricsLogger:
    """Appends one JSON line per turn; write failures are logged, never raised."""

    def __init__(self, path: str = "results/metrics.jsonl") -> None:
        self.path = path

    def log(self, m: TurnMetrics) -> None:
        line = json.dumps(asdict(m))
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.warning("Could not write metrics to %s: %s", self.path, e)


class Timer:
    """Wall-clock timer for a with-block; `ms` is available after exit."""

    ms: int = 0

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.ms = int((time.perf_counter() - self._started) * 1000)
