"""Tests for step timing and logging setup."""

import logging
import time

import pytest

from vpscan.logging_config import setup_logging
from vpscan.timing import timed


class TestTimed:
    def test_sets_elapsed_time(self):
        with timed("sleep") as timer:
            time.sleep(0.01)
        assert timer.label == "sleep"
        assert timer.elapsed_ms >= 5.0

    def test_logs_the_step(self, caplog):
        logger = logging.getLogger("vpscan.test")
        with caplog.at_level(logging.INFO, logger="vpscan.test"):
            with timed("tree build", logger, logging.INFO):
                pass
        assert any(r.getMessage().startswith("tree build took") for r in caplog.records)

    def test_time_is_recorded_when_the_block_raises(self):
        with pytest.raises(RuntimeError):
            with timed("failing") as timer:
                raise RuntimeError("boom")
        assert timer.elapsed_ms >= 0.0


class TestSetupLogging:
    def test_level(self, restore_root_logger):
        setup_logging("WARNING")
        assert logging.getLogger().level == logging.WARNING

    def test_writes_log_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "vpscan.log"
        setup_logging("INFO", str(log_file))
        logging.getLogger("vpscan.test").info("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()

        content = log_file.read_text()
        assert "vpscan.test - INFO - hello from the test" in content
