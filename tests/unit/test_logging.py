"""Unit tests for logging infrastructure."""
import logging
from spoilr.infrastructure.logging import setup_logging


def test_setup_logging_creates_log_file(tmp_path):
    """setup_logging writes spoilr.log into the log directory."""
    logger = setup_logging(tmp_path / "logs", debug=False)

    assert isinstance(logger, logging.Logger)
    assert (tmp_path / "logs" / "spoilr.log").exists()


def test_setup_logging_debug_mode(tmp_path):
    logger = setup_logging(tmp_path, debug=True)
    assert logger.getEffectiveLevel() == logging.DEBUG


def test_setup_logging_normal_mode(tmp_path):
    logger = setup_logging(tmp_path, debug=False)
    assert logger.getEffectiveLevel() == logging.INFO


def test_setup_logging_custom_path(tmp_path):
    custom = tmp_path / "elsewhere" / "run.log"
    setup_logging(tmp_path / "logs", log_path=custom)
    logging.getLogger("spoilr.test").info("hello from test")
    for handler in logging.getLogger().handlers:
        handler.flush()
    assert "hello from test" in custom.read_text(encoding="utf-8")
