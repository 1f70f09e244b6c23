import logging
import os
import sys

from autopress.utils import configure_logging, log_event


def test_configure_logging_idempotent(tmp_path, monkeypatch):
    log_file = tmp_path / "app.log"
    monkeypatch.setenv("AP_LOG_LEVEL", "INFO")
    monkeypatch.setenv("AP_LOG_FILE", str(log_file))

    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    try:
        root.handlers = []
        configure_logging("autopress")
        configure_logging("autopress")

        stdout_handlers = [
            handler
            for handler in root.handlers
            if isinstance(handler, logging.StreamHandler)
            and not isinstance(handler, logging.FileHandler)
            and getattr(handler, "stream", None) is sys.stdout
        ]
        file_handlers = [
            handler for handler in root.handlers if isinstance(handler, logging.FileHandler)
        ]

        assert len(stdout_handlers) == 1
        assert len(file_handlers) == 1
        assert file_handlers[0].baseFilename == os.path.abspath(str(log_file))
    finally:
        for handler in root.handlers:
            if handler not in original_handlers:
                handler.close()
        root.handlers = original_handlers
        root.setLevel(original_level)


def test_log_levels_override(monkeypatch):
    monkeypatch.setenv("AP_LOG_LEVELS", "autopress.links=DEBUG")
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    target = logging.getLogger("autopress.links")
    original = target.level
    try:
        configure_logging("autopress")
        assert target.level == logging.DEBUG
    finally:
        target.setLevel(original)
        root.handlers = original_handlers


def test_log_event_formats_key_values(caplog):
    logger = logging.getLogger("autopress.test")
    with caplog.at_level(logging.INFO, logger="autopress.test"):
        log_event(logger, logging.INFO, "published", post_id=7, category=4058)
    assert "event=published post_id=7 category=4058" in caplog.text
