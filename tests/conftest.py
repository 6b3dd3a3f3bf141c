"""Shared pytest fixtures."""

import logging

import pytest

from gcontacts_backup.utils.logging import LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_app_logger():
    """Undo setup_logging() between tests so caplog sees every record."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
