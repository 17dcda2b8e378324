"""
Tests for per-turn metrics.
"""

import json

import pytest

from convo.metrics import MetricsLogger, Timer, TurnMetrics, estimate_cost_usd, price_key


def _turn(**overrides):
    values = dict(
        conversation_id="c1",
        ts=1.0,
        model="gpt-4o-mini",
        latency_ms=120,
        input_tokens=1000,
        output_tokens=500,
        cost_usd_est=0.0,
    )
    values.update(overrides)
    return TurnMetrics(**values)


def test_estimate_cost_known_model():
    assert estimate_cost_usd("gpt-4o-mini", 1_000_000, 1_000_000) == pytest.approx(0.75)


def test_estimate_cost_dated_model_uses_base_price():
    assert estimate_cost_usd("gpt-4o-mini-2024-07-18", 1_000_000, 0) == pytest.approx(0.15)


def test_price_key_strips_date_suffix():
    assert price_key("gpt-4o-mini-2024-07-18") == "gpt-4o-mini"
    assert price_key("gpt-4o") == "gpt-4o"


def test_estimate_cost_unknown_model():
    assert estimate_cost_usd("some-other-model", 1000, 1000) == 0.0


def test_logger_appends_json_lines(tmp_path):
    path = tmp_path / "out" / "metrics.jsonl"
    logger = MetricsLogger(str(path))
    logger.log(_turn())
    logger.log(_turn(conversation_id="c2", new_conversation=True))

    lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [line["conversation_id"] for line in lines] == ["c1", "c2"]
    assert lines[1]["new_conversation"] is True


def test_logger_never_raises(tmp_path):
    blocked = tmp_path / "blocked"
    blocked.mkdir()
    MetricsLogger(str(blocked)).log(_turn())


def test_timer_measures_ms():
    with Timer() as t:
        pass
    assert t.ms >= 0
