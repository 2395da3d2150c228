"""
LOG_LEVEL / LOG_FILE settings drive the logging setup
"""

import logging
from pathlib import Path

import main
from app.core.config import settings


def test_log_file_setting_is_resolved_against_project_root():
    expected = Path(settings.log_file)
    if not expected.is_absolute():
        expected = main.BASE_DIR / expected
    assert main.LOG_FILE == expected
    assert main.LOGS_DIR.is_dir()


def test_setup_logging_uses_configured_level_and_file(monkeypatch):
    monkeypatch.setattr(settings, "debug", False)
    monkeypatch.setattr(settings, "log_level", "warning")
    try:
        main.setup_logging()
        root = logging.getLogger()

        assert root.level == logging.WARNING
        file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
        assert [Path(h.baseFilename) for h in file_handlers] == [main.LOG_FILE.absolute()]
    finally:
        monkeypatch.undo()
        main.setup_logging()


def test_debug_overrides_configured_level(monkeypatch):
    monkeypatch.setattr(settings, "debug", True)
    monkeypatch.setattr(settings, "log_level", "error")
    try:
        main.setup_logging()
        assert logging.getLogger().level == logging.DEBUG
    finally:
        monkeypatch.undo()
        main.setup_logging()
