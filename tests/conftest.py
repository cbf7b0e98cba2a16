"""Test configuration for pytest."""

import logging
import os

import pytest


@pytest.fixture(autouse=True)
def configure_test_logging():
    """Configure logging for tests to be minimal."""
    os.environ['RN_STORYBOOK_TEST_LOG_LEVEL'] = 'WARNING'

    logging.getLogger().setLevel(logging.WARNING)

    # The comparison and snapshot loggers are chatty on expected failures
    for logger_name in ['rn_storybook_test.comparison.screenshots', 'rn_storybook_test.snapshot.session']:
        logging.getLogger(logger_name).setLevel(logging.ERROR)
