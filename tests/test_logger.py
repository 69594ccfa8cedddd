"""Tests for logger setup."""
from __future__ import annotations

import logging

from scorebot.utils.logger import setup_logger


def test_logger_writes_console_and_daily_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    logger = setup_logger("scorebot.tests.logger")
    again = setup_logger("scorebot.tests.logger")

    assert again is logger
    assert len(logger.handlers) == 2
    file_handler = next(h for h in logger.handlers if isinstance(h, logging.FileHandler))
    assert file_handler.level == logging.DEBUG
    assert (tmp_path / "logs").is_dir()
    assert file_handler.baseFilename.startswith(str(tmp_path / "logs" / "scorebot_"))

    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
