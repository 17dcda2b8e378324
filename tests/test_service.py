"""
Tests for ConversationService: continuity, titles, timestamps, persistence.
"""

import json
import logging
import re

import pytest

from convo.errors import ExternalServiceError, StorageError, ValidationError
from convo.metrics import MetricsLogger
from convo.service import UNTITLED, ConversationService, utc_now_iso
from convo.store import JsonFileStore, MemoryStore

ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


def test_utc_now_iso_format():
    assert ISO_RE.match(utc_now_iso())


class TestSendMessage:
    def test_new_conversation(self, service, llm):
        result = service.send_message(None, "Help me plan a trip")

        assert result.is_new_conversation is True
        assert result.title == "Trip Planning Ideas"
        assert result.output_text == "echo: Help me plan a trip"
        assert result.response_id == "resp_1"
        assert result.created_at == result.updated_at
        assert ISO_RE.match(result.created_at)

        request = llm.chat_requests[0]
        assert request.store is True
        assert request.metadata == {"conversation_id": result.conversation_id}
        assert request.previous_response_id is None
        assert len(llm.title_requests) == 1

    def test_generated_ids_are_unique(self, service):
        ids = {service.send_message(None, f"message {n}").conversation_id for n in range(5)}
        assert len(ids) == 5
        assert service.get_conversation_count() == 5

    def test_second_turn_chains_previous_response(self, service, llm):
        first = service.send_message(None, "first")
        second = service.send_message(first.conversation_id, "second")

        assert llm.chat_requests[1].previous_response_id == first.response_id
        assert second.is_new_conversation is False
        assert second.conversation_id == first.conversation_id
        assert len(llm.title_requests) == 1

    def test_continuation_keeps_title_and_created_at(self, service):
        first = service.send_message(None, "first")
        second = service.send_message(first.conversation_id, "second")

        assert second.title == first.title
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert service.get_conversation(first.conversation_id).last_response_id == second.response_id

    def test_empty_string_id_starts_new_conversation(self, service, llm):
        result = service.send_message("", "hello")
        assert result.is_new_conversation is True
        assert result.conversation_id != ""
        assert len(llm.title_requests) == 1

    def test_unknown_supplied_id_is_created_untitled(self, service, llm):
        """An explicit id that is not stored yet gets no generated title."""
        result = service.send_message("client-chosen-id", "hello")

        assert result.conversation_id == "client-chosen-id"
        assert result.is_new_conversation is False
        assert result.title == UNTITLED
        assert result.created_at == result.updated_at
        assert llm.title_requests == []
        assert llm.chat_requests[0].previous_response_id is None

    def test_title_fallback(self, service, llm):
        llm.fail_title = True
        result = service.send_message(None, "Could you summarize this long article for me")
        assert result.title == "Could you summarize ..."

    def test_empty_generated_title_becomes_untitled(self, service, llm):
        llm.title = '""'
        assert service.send_message(None, "hi").title == UNTITLED

    @pytest.mark.parametrize("message", ["", None, 42])
    def test_invalid_message_rejected(self, service, llm, store_path, message):
        with pytest.raises(ValidationError):
            service.send_message(None, message)
        assert llm.requests == []
        assert not store_path.exists()

    def test_provider_failure_persists_nothing(self, service, llm, store_path):
        llm.fail_chat = "upstream unavailable"
        with pytest.raises(ExternalServiceError, match="upstream unavailable"):
            service.send_message(None, "hello")
        assert not store_path.exists()
        assert llm.title_requests == []

    def test_write_failure_raises_storage_error(self, llm, tmp_path):
        blocked = tmp_path / "blocked"
        blocked.mkdir()
        service = ConversationService(store=JsonFileStore(str(blocked)), llm=llm)
        with pytest.raises(StorageError):
            service.send_message(None, "hello")

    def test_reloads_store_for_external_changes(self, service, store_path):
        """Edits made to the file between calls are picked up."""
        result = service.send_message(None, "hello")
        data = json.loads(store_path.read_text(encoding="utf-8"))
        data[result.conversation_id]["title"] = "Edited elsewhere"
        store_path.write_text(json.dumps(data), encoding="utf-8")

        assert service.get_conversation_title(result.conversation_id) == "Edited elsewhere"

    def test_records_metrics(self, store, llm, tmp_path):
        metrics_path = tmp_path / "results" / "metrics.jsonl"
        service = ConversationService(
            store=store, llm=llm, model="gpt-4o-mini", metrics=MetricsLogger(str(metrics_path))
        )
        result = service.send_message(None, "hello")

        lines = metrics_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["conversation_id"] == result.conversation_id
        assert entry["input_tokens"] == 10
        assert entry["output_tokens"] == 5
        assert entry["new_conversation"] is True
        assert entry["title_fallback"] is False
        assert entry["cost_usd_est"] > 0


def test_logged_preview_redacts_key_across_cut(service, caplog):
    """A key that would be cut by the preview length is still redacted."""
    caplog.set_level(logging.INFO, logger="convo.service")
    service.send_message(None, "x" * 50 + " sk-" + "A" * 30)

    assert "sk-" not in caplog.text
    assert "AAAA" not in caplog.text


class TestReads:
    def test_unknown_id(self, service):
        assert service.conversation_exists("missing") is False
        assert service.get_conversation_title("missing") is None
        assert service.get_conversation_created_at("missing") is None
        assert service.get_conversation_updated_at("missing") is None
        assert service.get_conversation("missing") is None

    def test_field_lookups(self, service):
        result = service.send_message(None, "hello")
        cid = result.conversation_id
        assert service.conversation_exists(cid) is True
        assert service.get_conversation_title(cid) == result.title
        assert service.get_conversation_created_at(cid) == result.created_at
        assert service.get_conversation_updated_at(cid) == result.updated_at

    def test_infos_ids_and_count_in_insertion_order(self, service):
        ids = [service.send_message(None, f"m{n}").conversation_id for n in range(3)]

        infos = service.get_conversation_infos()
        assert [i.conversation_id for i in infos] == ids
        assert service.get_conversation_ids() == ids
        assert service.get_conversation_count() == 3
        assert infos[0].last_response_id.startswith("resp_")

    def test_persistence_round_trip(self, service, store_path, llm):
        """A new service over the same file sees identical entries."""
        for n in range(4):
            service.send_message(None, f"message {n}")
        before = service.get_conversation_infos()

        restarted = ConversationService(store=JsonFileStore(str(store_path)), llm=llm)
        assert restarted.get_conversation_infos() == before

    def test_db_path(self, service, store_path, llm):
        assert service.db_path == str(store_path)
        assert ConversationService(store=MemoryStore(), llm=llm).db_path is None
