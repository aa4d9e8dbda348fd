"""Tests for CLI logging setup."""

import logging

import pytest

from goldledger.logging import NOISY_LOGGERS, configure_logging


@pytest.fixture(autouse=True)
def restore_levels():
    root_level = logging.getLogger().level
    yield
    logging.getLogger().setLevel(root_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)


class TestConfigureLogging:
    def test_sets_root_level(self):
        configure_logging(logging.WARNING, force=True)
        assert logging.getLogger().level == logging.WARNING

    def test_http_client_quiet_at_info(self):
        configure_logging(logging.INFO, force=True)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_debug_lets_http_client_through(self):
        configure_logging(logging.DEBUG, force=True)
        assert logging.getLogger("httpx").level == logging.DEBUG
