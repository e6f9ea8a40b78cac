from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from PIL import Image, UnidentifiedImageError
from PySide6.QtCore import QByteArray, QSize, Qt, QTimer
from PySide6.QtGui import QCloseEvent, QIcon, QKeySequence, QPixmap, QShortcut
from PySide6.QtWidgets import (
    QCheckBox,
    QFileDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QPushButton,
    QScrollArea,
    QSlider,
    QSpinBox,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from pixelpaint.core.board import load_image
from pixelpaint.core.codec import decode_bytes
from pixelpaint.core.engine import MAX_BRUSH_SIZE, MIN_BRUSH_SIZE
from pixelpaint.core.export import pixelate_image, save_png
from pixelpaint.core.quantizer import MAX_CLUSTERS, MAX_ITERATIONS, MIN_CLUSTERS, MIN_ITERATIONS
from pixelpaint.core.session import SAVE_SAVED, SAVE_SAVING, ArtworkSession, SessionManager
from pixelpaint.core.settings import save_settings
from pixelpaint.ui.board_canvas import BoardCanvas
from pixelpaint.ui.colors import BoardColors, blend_hex, chip_text_color, rgb_to_hex

logger = logging.getLogger(__name__)

SAVED_FLASH_MS = 700


class MainWindow(QMainWindow):
    """Two screens: home (new board + gallery) and board (painting)."""

    def __init__(self, manager: SessionManager) -> None:
        super().__init__()
        self._manager = manager
        self._source_path: Optional[Path] = None
        self._source_image: Optional[Image.Image] = None
        self._chip_buttons: List[QPushButton] = []

        self._stack = QStackedWidget()
        self._home_screen = self._build_home()
        self._board_screen = self._build_board()
        self._stack.addWidget(self._home_screen)
        self._stack.addWidget(self._board_screen)
        self.setCentralWidget(self._stack)
        self.setWindowTitle("PixelPaint")
        self.resize(1200, 820)

        self._manager.add_save_state_listener(self._on_save_state)
        self._manager.add_completion_listener(self._on_completed)
        self._manager.add_selection_listener(lambda _color: self._sync_palette())

        QShortcut(QKeySequence("["), self, activated=self._shrink_brush)
        QShortcut(QKeySequence("]"), self, activated=self._grow_brush)

        self._refresh_gallery()

    # -- home screen ----------------------------------------------------------

    def _build_home(self) -> QWidget:
        settings = self._manager.settings
        screen = QWidget()
        layout = QHBoxLayout(screen)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(16)

        config = QWidget()
        form = QFormLayout(config)
        self._title_edit = QLineEdit()
        self._title_edit.setPlaceholderText("Random title")
        form.addRow("Title", self._title_edit)

        pick_row = QHBoxLayout()
        pick_button = QPushButton("Choose image…")
        pick_button.clicked.connect(self._choose_image)
        self._source_label = QLabel("No image")
        self._source_label.setStyleSheet(f"color: {BoardColors.TEXT_MUTED};")
        pick_row.addWidget(pick_button)
        pick_row.addWidget(self._source_label, 1)
        form.addRow("Image", pick_row)

        self._cells_spin = QSpinBox()
        self._cells_spin.setRange(1, 1000)
        self._cells_spin.setValue(settings.cells_across)
        form.addRow("Cells across", self._cells_spin)

        self._k_spin = QSpinBox()
        self._k_spin.setRange(MIN_CLUSTERS, MAX_CLUSTERS)
        self._k_spin.setValue(settings.palette_size)
        form.addRow("Palette size (K)", self._k_spin)

        self._iter_spin = QSpinBox()
        self._iter_spin.setRange(MIN_ITERATIONS, MAX_ITERATIONS)
        self._iter_spin.setValue(settings.iterations)
        form.addRow("Quality (iterations)", self._iter_spin)

        self._autosave_check = QCheckBox("Enabled")
        self._autosave_check.setChecked(settings.autosave)
        self._autosave_check.toggled.connect(self._manager.set_autosave)
        form.addRow("Autosave", self._autosave_check)

        self._grid_check = QCheckBox("Show grid on board")
        self._grid_check.setChecked(settings.show_grid)
        form.addRow("", self._grid_check)

        generate = QPushButton("Generate && open board")
        generate.clicked.connect(self._generate_board)
        export_pixelated = QPushButton("Export pixelated upload")
        export_pixelated.clicked.connect(self._export_pixelated)
        form.addRow(generate)
        form.addRow(export_pixelated)
        self._home_status = QLabel("")
        self._home_status.setWordWrap(True)
        form.addRow(self._home_status)

        gallery_box = QWidget()
        gallery_layout = QVBoxLayout(gallery_box)
        gallery_layout.setContentsMargins(0, 0, 0, 0)
        gallery_layout.addWidget(QLabel("Gallery"))
        self._gallery = QListWidget()
        self._gallery.setIconSize(QSize(96, 96))
        self._gallery.itemDoubleClicked.connect(lambda item: self._open_artwork(item.data(Qt.UserRole)))
        gallery_layout.addWidget(self._gallery, 1)

        buttons = QHBoxLayout()
        for text, handler in (
            ("Open", lambda: self._open_artwork(self._selected_gallery_id())),
            ("Export PNG", lambda: self._export_artwork(self._selected_gallery_id())),
            ("Delete", lambda: self._delete_artwork(self._selected_gallery_id())),
        ):
            button = QPushButton(text)
            button.clicked.connect(handler)
            buttons.addWidget(button)
        gallery_layout.addLayout(buttons)

        layout.addWidget(config, 1)
        layout.addWidget(gallery_box, 2)
        return screen

    def _refresh_gallery(self) -> None:
        self._gallery.clear()
        items = self._manager.gallery()
        if not items:
            placeholder = QListWidgetItem("No saved artworks yet. Generate one and it will be saved here.")
            placeholder.setFlags(Qt.NoItemFlags)
            self._gallery.addItem(placeholder)
            return
        for meta in items:
            item = QListWidgetItem(f"{meta.title or 'Untitled'}\n{meta.cols}×{meta.rows} · {meta.progress_percent}%")
            item.setData(Qt.UserRole, meta.id)
            if meta.thumbnail:
                pixmap = QPixmap()
                try:
                    pixmap.loadFromData(QByteArray(decode_bytes(meta.thumbnail)), "PNG")
                except ValueError:
                    logger.warning("Unreadable thumbnail for %s", meta.id)
                else:
                    item.setIcon(QIcon(pixmap))
            self._gallery.addItem(item)

    def _selected_gallery_id(self) -> Optional[str]:
        item = self._gallery.currentItem()
        return item.data(Qt.UserRole) if item is not None else None

    def _choose_image(self) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self, "Choose image", str(Path.home()), "Images (*.png *.jpg *.jpeg *.bmp *.gif *.webp)"
        )
        if not path:
            return
        try:
            self._source_image = load_image(Path(path))
        except (UnidentifiedImageError, OSError) as e:
            logger.warning("Could not open image %s: %s", path, e)
            self._home_status.setText(f"Could not open {Path(path).name}")
            return
        self._source_path = Path(path)
        self._source_label.setText(f"{self._source_path.name} ({self._source_image.width}×{self._source_image.height})")
        self._home_status.setText("")

    def _apply_home_settings(self) -> None:
        settings = self._manager.settings
        settings.cells_across = self._cells_spin.value()
        settings.palette_size = self._k_spin.value()
        settings.iterations = self._iter_spin.value()
        settings.show_grid = self._grid_check.isChecked()

    def _generate_board(self) -> None:
        if self._source_image is None:
            self._home_status.setText("Choose an image first.")
            return
        self._apply_home_settings()
        self._manager.create_from_image(self._source_image, self._title_edit.text())
        self._source_image = None
        self._source_path = None
        self._source_label.setText("No image")
        self._title_edit.clear()
        self._show_board_screen()

    def _export_pixelated(self) -> None:
        if self._source_image is None or self._source_path is None:
            self._home_status.setText("Choose an image first.")
            return
        stem = self._title_edit.text().strip() or f"{self._source_path.stem}_pixelated"
        target, _ = QFileDialog.getSaveFileName(self, "Export pixelated image", f"{stem}.png", "PNG (*.png)")
        if not target:
            return
        image = pixelate_image(self._source_image, self._cells_spin.value(), self._manager.settings.export_cell_px)
        try:
            saved = save_png(image, Path(target))
        except OSError as e:
            logger.warning("Export failed: %s", e)
            self._home_status.setText("Export failed.")
            return
        self._home_status.setText(f"Exported {saved.name}")

    def _open_artwork(self, artwork_id: Optional[str]) -> None:
        if not artwork_id:
            return
        if self._manager.open(artwork_id) is None:
            self._home_status.setText("That artwork could not be opened.")
            self._refresh_gallery()
            return
        self._show_board_screen()

    def _export_artwork(self, artwork_id: Optional[str], draw_grid: bool = True) -> None:
        if not artwork_id:
            return
        meta = self._manager.store.get_meta(artwork_id)
        name = (meta.title.strip() if meta and meta.title.strip() else "artwork") + ".png"
        target, _ = QFileDialog.getSaveFileName(self, "Export PNG", name, "PNG (*.png)")
        if not target:
            return
        try:
            self._manager.export_png(Path(target), artwork_id, draw_grid=draw_grid)
        except OSError as e:
            logger.warning("Export of %s failed: %s", artwork_id, e)

    def _delete_artwork(self, artwork_id: Optional[str]) -> None:
        if not artwork_id:
            return
        self._manager.delete(artwork_id)
        self._refresh_gallery()
        if self._manager.active is None and self._stack.currentWidget() is self._board_screen:
            self._show_home_screen()

    # -- board screen ---------------------------------------------------------

    def _build_board(self) -> QWidget:
        screen = QWidget()
        layout = QVBoxLayout(screen)
        layout.setContentsMargins(16, 12, 16, 12)
        layout.setSpacing(8)

        header = QHBoxLayout()
        back = QPushButton("← Back")
        back.clicked.connect(self._leave_board)
        self._board_title = QLineEdit()
        self._board_title.editingFinished.connect(lambda: self._manager.rename(self._board_title.text()))
        self._progress_label = QLabel("")
        self._save_label = QLabel("")
        self._save_label.setStyleSheet(f"color: {BoardColors.TEXT_MUTED};")
        header.addWidget(back)
        header.addWidget(self._board_title, 1)
        header.addWidget(self._progress_label)
        header.addWidget(self._save_label)
        layout.addLayout(header)

        tools = QHBoxLayout()
        for text, handler in (
            ("Reset fills", self._reset_fills),
            ("Save", lambda: self._manager.save("manual")),
            ("Export PNG", lambda: self._export_artwork(self._manager.current_id(), self._grid_check.isChecked())),
            ("Fit to frame", lambda: self._canvas.fit_to_frame()),
            ("Reset view", lambda: self._canvas.reset_view()),
            ("−", lambda: self._canvas.zoom_by(1 / 1.2)),
            ("+", lambda: self._canvas.zoom_by(1.2)),
        ):
            button = QPushButton(text)
            button.clicked.connect(handler)
            tools.addWidget(button)
        self._bomb_button = QPushButton("💣")
        self._bomb_button.setToolTip("Arm the bomb, then click the board")
        self._bomb_button.clicked.connect(lambda: self._canvas.arm_bomb())
        tools.addWidget(self._bomb_button)
        tools.addStretch(1)
        tools.addWidget(QLabel("Brush"))
        self._brush_slider = QSlider(Qt.Horizontal)
        self._brush_slider.setRange(MIN_BRUSH_SIZE, MAX_BRUSH_SIZE)
        self._brush_slider.setFixedWidth(160)
        self._brush_slider.valueChanged.connect(self._set_brush)
        self._brush_value = QLabel("1")
        tools.addWidget(self._brush_slider)
        tools.addWidget(self._brush_value)
        layout.addLayout(tools)

        self._canvas = BoardCanvas(self._manager)
        self._canvas.cellsFilled.connect(lambda _cells: self._update_board_status())
        self._canvas.bombDropped.connect(lambda _index: self._update_board_status())
        layout.addWidget(self._canvas, 1)

        self._palette_row = QWidget()
        self._palette_layout = QHBoxLayout(self._palette_row)
        self._palette_layout.setContentsMargins(0, 0, 0, 0)
        self._palette_layout.setSpacing(8)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setFixedHeight(64)
        scroll.setWidget(self._palette_row)
        layout.addWidget(scroll)
        return screen

    def _show_board_screen(self) -> None:
        session = self._manager.active
        if session is None:
            self._show_home_screen()
            return
        self._stack.setCurrentWidget(self._board_screen)
        self._board_title.setText(session.title)
        self._brush_slider.setValue(session.engine.brush_size)
        self._canvas.set_show_grid(self._manager.settings.show_grid)
        self._rebuild_palette(session)
        QTimer.singleShot(0, self._canvas.reload)
        self._update_board_status()

    def _show_home_screen(self) -> None:
        self._refresh_gallery()
        self._stack.setCurrentWidget(self._home_screen)

    def _leave_board(self) -> None:
        self._manager.close()
        self._show_home_screen()

    def _rebuild_palette(self, session: ArtworkSession) -> None:
        for button in self._chip_buttons:
            button.deleteLater()
        self._chip_buttons = []
        for color, rgb in enumerate(session.snapshot.palette):
            chip = QPushButton(str(color + 1))
            chip.setFixedSize(40, 40)
            chip.setCheckable(True)
            chip.setStyleSheet(
                f"""
                QPushButton {{
                    background: {rgb_to_hex(rgb)};
                    color: {chip_text_color(rgb)};
                    border: 1px solid #cbd5e1;
                    border-radius: 20px;
                    font-weight: 900;
                }}
                QPushButton:hover {{
                    background: {blend_hex(rgb_to_hex(rgb), "#FFFFFF", 0.2)};
                }}
                QPushButton:checked {{
                    border: 3px solid {BoardColors.PRIMARY};
                }}
                """
            )
            chip.clicked.connect(lambda _checked=False, c=color: self._select_color(c))
            self._palette_layout.addWidget(chip)
            self._chip_buttons.append(chip)
        self._palette_layout.addStretch(1)
        self._sync_palette()

    def _sync_palette(self) -> None:
        session = self._manager.active
        if session is None:
            return
        engine = session.engine
        for color, chip in enumerate(self._chip_buttons):
            chip.setVisible(not engine.is_hidden(color))
            chip.setChecked(color == engine.selected)
        self._canvas.update()

    def _select_color(self, color: int) -> None:
        session = self._manager.active
        if session is not None:
            session.engine.select(color)
        self._sync_palette()

    def _set_brush(self, size: int) -> None:
        session = self._manager.active
        if session is not None:
            session.engine.brush_size = size
        self._manager.settings.brush_size = size
        self._brush_value.setText(str(size))

    def _grow_brush(self) -> None:
        self._brush_slider.setValue(min(MAX_BRUSH_SIZE, self._brush_slider.value() + 1))

    def _shrink_brush(self) -> None:
        self._brush_slider.setValue(max(MIN_BRUSH_SIZE, self._brush_slider.value() - 1))

    def _reset_fills(self) -> None:
        self._manager.reset_fills()
        self._canvas.refresh()
        self._sync_palette()
        self._update_board_status()

    def _update_board_status(self) -> None:
        session = self._manager.active
        if session is None:
            return
        engine = session.engine
        text = f"Progress {engine.progress_percent}%"
        if engine.is_complete:
            text += " · Completed!"
        self._progress_label.setText(text)
        self._sync_palette()

    def _on_save_state(self, state: str) -> None:
        if state == SAVE_SAVING:
            self._save_label.setText("Saving…")
        elif state == SAVE_SAVED:
            self._save_label.setText("Saved")
            QTimer.singleShot(SAVED_FLASH_MS, self._manager.settle_save_state)
        else:
            self._save_label.setText("")

    def _on_completed(self, session: ArtworkSession) -> None:
        logger.info("Completed %r", session.title)
        self._update_board_status()

    def closeEvent(self, event: QCloseEvent) -> None:
        """Persist the open artwork and preferences when closing the app."""
        self._apply_home_settings()
        self._manager.close()
        save_settings(self._manager.settings)
        super().closeEvent(event)
