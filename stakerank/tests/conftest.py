import logging

import pytest

from stakerank.logging import ROOT_LOGGER


@pytest.fixture(autouse=True)
def _restore_root_logger(monkeypatch):
    """configure_logging() replaces handlers on the package logger; undo it after each test."""
    for key in ("STAKERANK_LOG_LEVEL", "STAKERANK_LOG_FORMAT", "STAKERANK_LOG_FILE", "STAKERANK_LOG_REDACT"):
        monkeypatch.delenv(key, raising=False)
    logger = logging.getLogger(ROOT_LOGGER)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for handler in logger.handlers:
        if handler not in saved[0]:
            handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]
