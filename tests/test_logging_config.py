"""Tests for structlog configuration and poll context binding."""

import logging

import pytest
import structlog

from notifeed.logging_config import bind_poll_context, clear_poll_context, configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_configure_logging_installs_one_handler(restore_root_logger):
    configure_logging(log_level="debug", json_output=True)

    root = restore_root_logger
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
    assert root.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_unknown_level_falls_back_to_info(restore_root_logger):
    configure_logging(log_level="chatty")
    assert restore_root_logger.level == logging.INFO


def test_poll_context_binding():
    clear_poll_context()
    bind_poll_context("slack", cycle_id="cyc_1")
    assert structlog.contextvars.get_contextvars() == {"source": "slack", "cycle_id": "cyc_1"}

    clear_poll_context()
    assert structlog.contextvars.get_contextvars() == {}
