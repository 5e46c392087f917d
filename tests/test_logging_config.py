"""Tests for logging helpers."""

import logging

from travalpass.logging_config import format_destination, format_id_list, get_structured_logger


class TestFormatDestination:
    def test_short_destination_unchanged(self):
        assert format_destination("Miami, FL, USA", max_length=40) == (
            "Miami, FL, USA",
            "Miami, FL, USA",
        )

    def test_long_destination_truncated(self):
        full, display = format_destination(
            "Santa Margherita Ligure, Liguria, Italy", max_length=20
        )

        assert full == "Santa Margherita Ligure, Liguria, Italy"
        assert display == "Santa Margherita ..."
        assert len(display) == 20

    def test_empty_destination(self):
        assert format_destination("") == ("", "")

    def test_zero_max_length_disables_truncation(self):
        assert format_destination("Reykjavik, Iceland", max_length=0)[1] == "Reykjavik, Iceland"


class TestFormatIdList:
    def test_short_list_sorted(self):
        assert format_id_list(["b", "a"], max_items=5) == "a, b"

    def test_long_list_elided(self):
        assert format_id_list(["e", "d", "c", "b", "a"], max_items=2) == "a, b (+3 more)"

    def test_empty(self):
        assert format_id_list([], max_items=5) == ""


class TestStructuredLogger:
    def test_search_activity_levels(self, caplog):
        slogger = get_structured_logger("travalpass.test")

        with caplog.at_level(logging.INFO, logger="travalpass.test"):
            slogger.search_activity("Miami, FL, USA", "completed", {"results": 3})
            slogger.search_activity("Miami, FL, USA", "failed")

        assert caplog.records[0].levelno == logging.INFO
        assert caplog.records[0].getMessage() == "[SEARCH] COMPLETED - Miami, FL, USA | results=3"
        assert caplog.records[1].levelno == logging.ERROR

    def test_filter_decision_logged_at_debug(self, caplog):
        slogger = get_structured_logger("travalpass.test")

        with caplog.at_level(logging.DEBUG, logger="travalpass.test"):
            slogger.filter_decision("it-1", False, "Destination mismatch")

        assert caplog.records[0].levelno == logging.DEBUG
        assert "REJECT - ID:it-1 | Destination mismatch" in caplog.records[0].getMessage()

    def test_migration_progress(self, caplog):
        slogger = get_structured_logger("travalpass.test")

        with caplog.at_level(logging.INFO, logger="travalpass.test"):
            slogger.migration_progress(2, 200, {"migrated": 400})

        assert caplog.records[0].getMessage() == "[MIGRATE] BATCH 2 - 200 docs | migrated=400"
