"""
Tests for AppSettings defaults/round trip and logging setup.
"""

import logging
from pathlib import Path

import pytest

from logging_setup import LOG_FILE_NAME, setup_logging
from settings import DEFAULT_PREVIEW_HEIGHT, DEFAULT_PREVIEW_WIDTH, config_dir


class TestAppSettings:

    def test_defaults(self, app_settings):
        assert app_settings.preview_max_width == DEFAULT_PREVIEW_WIDTH
        assert app_settings.preview_max_height == DEFAULT_PREVIEW_HEIGHT
        assert app_settings.log_level == "INFO"
        assert app_settings.export_dir == str(Path.home())
        assert app_settings.fonts_dir == config_dir() / "fonts"

    def test_round_trip(self, app_settings, tmp_path):
        app_settings.preview_max_width = 640
        app_settings.preview_max_height = 720
        app_settings.export_dir = str(tmp_path)
        app_settings.fonts_dir = str(tmp_path / "my-fonts")
        app_settings.log_level = "debug"
        app_settings.sync()
        assert app_settings.preview_max_width == 640
        assert app_settings.preview_max_height == 720
        assert app_settings.export_dir == str(tmp_path)
        assert app_settings.fonts_dir == tmp_path / "my-fonts"
        assert app_settings.log_level == "DEBUG"

    def test_config_dir_created(self, app_settings):
        assert config_dir().is_dir()


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLogging:

    def test_console_only(self, restore_root_logger):
        setup_logging("WARNING")
        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1

    def test_rotating_file(self, restore_root_logger, tmp_path):
        setup_logging("debug", tmp_path)
        logging.getLogger("edit_chain").debug("hello log")
        for h in restore_root_logger.handlers:
            h.flush()
        assert restore_root_logger.level == logging.DEBUG
        assert "hello log" in (tmp_path / LOG_FILE_NAME).read_text(encoding="utf-8")

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        setup_logging("chatty")
        assert restore_root_logger.level == logging.INFO
