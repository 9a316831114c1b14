"""
main.py — Entry point for PDF Composer
"""

import logging
import os
import sys

# High-DPI support
os.environ.setdefault("QT_ENABLE_HIGHDPI_SCALING", "1")

from PyQt6.QtGui import QFont
from PyQt6.QtWidgets import QApplication

from logging_setup import setup_logging
from main_window import MainWindow
from settings import APP_NAME, ORG_NAME, AppSettings, config_dir
from version import __version__

logger = logging.getLogger(__name__)


def main():
    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setOrganizationName(ORG_NAME)
    app.setApplicationVersion(__version__)
    app.setStyle("Fusion")

    settings = AppSettings()
    setup_logging(settings.log_level, config_dir())
    logger.info("%s %s starting", APP_NAME, __version__)

    # Default font
    font = QFont("Segoe UI", 10)
    app.setFont(font)

    # Light style sheet
    app.setStyleSheet("""
        QMainWindow { background: #f0f0f0; }
        QSplitter::handle { background: #d0d0d0; }
        QListWidget { border: none; }
        QGroupBox {
            font-weight: bold;
            border: 1px solid #ddd;
            border-radius: 6px;
            margin-top: 8px;
            padding-top: 6px;
        }
        QGroupBox::title { subcontrol-origin: margin; left: 8px; padding: 0 4px; }
        QPushButton {
            padding: 4px 12px;
            border-radius: 4px;
            border: 1px solid #ccc;
            background: white;
        }
        QPushButton:hover { background: #f0f0f0; }
        QPushButton:pressed { background: #e0e0e0; }
        QStatusBar { background: #fafafa; border-top: 1px solid #e0e0e0; }
    """)

    window = MainWindow(settings)

    # Open files passed as command-line arguments
    pdf_args = [a for a in sys.argv[1:] if a.lower().endswith(".pdf") and os.path.exists(a)]
    if pdf_args:
        window.load_files(pdf_args)

    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
