"""Tests for logging_utils module."""

from __future__ import annotations

import pytest
from loguru import logger

from draken.logging_utils import configure_logging, preview


class TestPreview:
    """Test preview function."""

    def test_short_text_is_flattened(self):
        assert preview("list\n  the   files") == "list the files"

    def test_long_text_is_truncated(self):
        result = preview("x" * 200, limit=10)

        assert result == "x" * 10 + "…"

    def test_empty_text(self):
        assert preview("") == ""


class TestConfigureLogging:
    """Test configure_logging function."""

    def test_level_filters_messages(self, capsys: pytest.CaptureFixture[str]):
        configure_logging("warning")
        logger.info("hidden message")
        logger.warning("visible message")

        err = capsys.readouterr().err
        assert "visible message" in err
        assert "hidden message" not in err

    def test_reconfigure_replaces_sink(self, capsys: pytest.CaptureFixture[str]):
        configure_logging("INFO")
        configure_logging("INFO")
        logger.info("once")

        assert capsys.readouterr().err.count("once") == 1
