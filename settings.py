"""
settings.py — Persistent user preferences (QSettings) and the app config dir.
"""

from __future__ import annotations

import os
from pathlib import Path

from PyQt6.QtCore import QSettings

ORG_NAME = "PDFComposer"
APP_NAME = "PDF Composer"

DEFAULT_PREVIEW_WIDTH = 400
DEFAULT_PREVIEW_HEIGHT = 500


def config_dir() -> Path:
    """Returns the app config directory (Windows: %APPDATA%/PDFComposer)."""
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home())) / ORG_NAME
    else:
        base = Path.home() / ".config" / ORG_NAME
    base.mkdir(parents=True, exist_ok=True)
    return base


class AppSettings:
    """Typed access to the values stored under QSettings("PDFComposer", "Settings")."""

    def __init__(self, settings: QSettings | None = None):
        self.settings = settings if settings is not None else QSettings(ORG_NAME, "Settings")

    # ── Preview ───────────────────────────────

    @property
    def preview_max_width(self) -> int:
        return self.settings.value("preview/max_width", DEFAULT_PREVIEW_WIDTH, type=int)

    @preview_max_width.setter
    def preview_max_width(self, value: int):
        self.settings.setValue("preview/max_width", int(value))

    @property
    def preview_max_height(self) -> int:
        return self.settings.value("preview/max_height", DEFAULT_PREVIEW_HEIGHT, type=int)

    @preview_max_height.setter
    def preview_max_height(self, value: int):
        self.settings.setValue("preview/max_height", int(value))

    # ── Export / fonts / logging ──────────────

    @property
    def export_dir(self) -> str:
        return self.settings.value("export/last_dir", str(Path.home()), type=str)

    @export_dir.setter
    def export_dir(self, value: str):
        self.settings.setValue("export/last_dir", value)

    @property
    def fonts_dir(self) -> Path:
        stored = self.settings.value("fonts/dir", "", type=str)
        return Path(stored) if stored else config_dir() / "fonts"

    @fonts_dir.setter
    def fonts_dir(self, value: str):
        self.settings.setValue("fonts/dir", str(value))

    @property
    def log_level(self) -> str:
        return self.settings.value("logging/level", "INFO", type=str)

    @log_level.setter
    def log_level(self, value: str):
        self.settings.setValue("logging/level", value.upper())

    def sync(self):
        self.settings.sync()
