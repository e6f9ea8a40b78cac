"""Application entry point and setup for PixelPaint."""

import logging
import sys

from PySide6.QtGui import QGuiApplication
from PySide6.QtWidgets import QApplication

from pixelpaint.core.session import SessionManager
from pixelpaint.core.settings import load_settings
from pixelpaint.core.storage import PersistenceStore
from pixelpaint.ui.main_window import MainWindow


def configure_logging() -> None:
    """Configure application-wide logging with a standard format."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def run() -> None:
    """Initialize the application, migrate old saves, and start the main window."""
    configure_logging()
    app = QApplication(sys.argv)
    app.setApplicationName("PixelPaint")
    app.setApplicationDisplayName("PixelPaint")

    settings = load_settings()
    store = PersistenceStore()
    imported = store.migrate_legacy()
    if imported:
        logging.info(f"Imported {imported} artworks from the old gallery format")

    manager = SessionManager(store, settings)
    window = MainWindow(manager)
    screen = QGuiApplication.primaryScreen()
    if screen is not None:
        geometry = screen.availableGeometry()
        window.resize(min(1200, geometry.width()), min(820, geometry.height()))
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    run()
