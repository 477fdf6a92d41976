"""Tests for logger setup: handler ownership, file target, quiet libraries."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from swarm_ai import logger as logger_module
from swarm_ai.logger import setup_logger


@pytest.fixture
def fresh_logger():
    name = "swarm_ai_test_logger"
    yield name
    log = logging.getLogger(name)
    for handler in list(log.handlers):
        log.removeHandler(handler)
        handler.close()


class TestSetupLogger:

    def test_console_only_when_file_disabled(self, fresh_logger):
        log = setup_logger(fresh_logger, verbose=True, log_file=False)
        assert log.level == logging.INFO
        assert not log.propagate
        assert len(log.handlers) == 1
        assert not isinstance(log.handlers[0], RotatingFileHandler)

    @pytest.mark.parametrize("word", ["off", "None", " no "])
    def test_disable_words(self, fresh_logger, word):
        log = setup_logger(fresh_logger, log_file=word)
        assert log.level == logging.WARNING
        assert len(log.handlers) == 1

    def test_file_target_records_thread(self, fresh_logger, tmp_path):
        path = tmp_path / "logs" / "mission.log"
        log = setup_logger(fresh_logger, verbose=True, log_file=str(path))
        log.info("dispatching")
        for handler in log.handlers:
            handler.flush()
        assert path.exists()
        assert "MainThread" in path.read_text()

    def test_default_path(self, fresh_logger, tmp_path, monkeypatch):
        target = tmp_path / "default.log"
        monkeypatch.setattr(logger_module, "DEFAULT_LOG_FILE", target)
        log = setup_logger(fresh_logger, log_file=None)
        assert any(isinstance(h, RotatingFileHandler) for h in log.handlers)
        assert target.parent.exists()

    def test_repeat_setup_keeps_foreign_handlers(self, fresh_logger):
        foreign = logging.NullHandler()
        log = logging.getLogger(fresh_logger)
        log.addHandler(foreign)
        setup_logger(fresh_logger, log_file=False)
        setup_logger(fresh_logger, log_file=False)
        assert foreign in log.handlers
        assert len(log.handlers) == 2

    def test_client_libraries_quieted(self, fresh_logger, monkeypatch):
        lib = logging.getLogger("httpx")
        monkeypatch.setattr(lib, "level", logging.DEBUG)
        setup_logger(fresh_logger, log_file=False)
        assert lib.level == logging.WARNING
