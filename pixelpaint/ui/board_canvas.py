"""Board view: draws the numbered grid and turns pointer input into cell indices."""

from __future__ import annotations

from typing import List, Optional

import numpy as np
from PySide6.QtCore import QPointF, QRectF, Qt, QTimer, Signal
from PySide6.QtGui import QColor, QImage, QPainter, QPen
from PySide6.QtWidgets import QWidget

from pixelpaint.core.board import bomb_radius, cell_colors
from pixelpaint.core.engine import StrokeBuffer
from pixelpaint.core.session import SessionManager
from pixelpaint.ui.colors import BoardColors

FRAME_MS = 16
MIN_ZOOM = 0.2
MAX_ZOOM = 8.0
MIN_LABEL_PX = 10


class BoardCanvas(QWidget):
    """Zoomable, pannable board.

    Left button paints (one brush stamp per frame, latest cell only), right or
    middle button pans, the wheel zooms around the cursor. While the bomb is
    armed the next left click drops it instead of painting.
    """

    cellsFilled = Signal(list)
    bombDropped = Signal(int)

    def __init__(self, manager: SessionManager, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._manager = manager
        self._cell_px = 24
        self._zoom = 1.0
        self._offset = QPointF(0, 0)
        self._show_grid = True
        self._painting = False
        self._panning = False
        self._pan_origin = QPointF(0, 0)
        self._pan_offset = QPointF(0, 0)
        self._bomb_armed = False
        self._hover: Optional[QPointF] = None
        self._image: Optional[QImage] = None
        self._image_bytes: Optional[bytes] = None
        self._stroke = StrokeBuffer(self._manager.paint_at)

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)
        self.setMinimumSize(320, 240)
        self.setContextMenuPolicy(Qt.PreventContextMenu)

    # -- public API -----------------------------------------------------------

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def bomb_armed(self) -> bool:
        return self._bomb_armed

    def set_show_grid(self, show: bool) -> None:
        self._show_grid = show
        self.update()

    def arm_bomb(self) -> None:
        self._bomb_armed = True
        self.setCursor(Qt.CrossCursor)
        self.update()

    def disarm_bomb(self) -> None:
        self._bomb_armed = False
        self.unsetCursor()
        self.update()

    def reload(self) -> None:
        """Rebuild the cached cell image for the open artwork and frame it."""
        session = self._manager.active
        self._stroke.cancel()
        if session is None:
            self._image = None
            self.update()
            return
        # Keep large boards within a sane backing size.
        longest = max(session.snapshot.cols, session.snapshot.rows)
        self._cell_px = max(8, min(24, 6000 // max(1, longest)))
        self._rebuild_image()
        self.fit_to_frame()

    def refresh(self) -> None:
        self._rebuild_image()
        self.update()

    def zoom_by(self, factor: float, anchor: Optional[QPointF] = None) -> None:
        anchor = anchor or QPointF(self.width() / 2, self.height() / 2)
        world = (anchor - self._offset) / self._zoom
        self._zoom = max(MIN_ZOOM, min(MAX_ZOOM, self._zoom * factor))
        self._offset = anchor - world * self._zoom
        self.update()

    def reset_view(self) -> None:
        self._zoom = 1.0
        self._offset = QPointF(0, 0)
        self.update()

    def fit_to_frame(self) -> None:
        session = self._manager.active
        if session is None:
            return
        board_w = session.snapshot.cols * self._cell_px
        board_h = session.snapshot.rows * self._cell_px
        avail_w = max(1, self.width() - 16)
        avail_h = max(1, self.height() - 16)
        self._zoom = max(0.1, min(avail_w / board_w, avail_h / board_h))
        self._offset = QPointF((avail_w - board_w * self._zoom) / 2 + 8, (avail_h - board_h * self._zoom) / 2 + 8)
        self.update()

    def cell_at(self, pos: QPointF) -> Optional[int]:
        """Cell index under a widget-space point, or None outside the board."""
        session = self._manager.active
        if session is None:
            return None
        x = (pos.x() - self._offset.x()) / self._zoom
        y = (pos.y() - self._offset.y()) / self._zoom
        cols, rows = session.snapshot.cols, session.snapshot.rows
        if x < 0 or y < 0 or x >= cols * self._cell_px or y >= rows * self._cell_px:
            return None
        return int(y // self._cell_px) * cols + int(x // self._cell_px)

    # -- painting input ------------------------------------------------------

    def _queue_stroke(self, index: int) -> None:
        if self._stroke.push(index):
            QTimer.singleShot(FRAME_MS, self._flush_stroke)

    def _flush_stroke(self) -> None:
        filled = self._stroke.flush()
        if filled:
            self._after_fill(filled)

    def _after_fill(self, filled: List[int]) -> None:
        self._rebuild_image()
        self.update()
        self.cellsFilled.emit(filled)

    def mousePressEvent(self, event) -> None:
        pos = event.position()
        if event.button() in (Qt.RightButton, Qt.MiddleButton):
            self._panning = True
            self._pan_origin = pos
            self._pan_offset = QPointF(self._offset)
            return
        if event.button() != Qt.LeftButton:
            return
        index = self.cell_at(pos)
        if self._bomb_armed:
            self.disarm_bomb()
            if index is not None:
                filled = self._manager.drop_bomb(index)
                self.bombDropped.emit(index)
                if filled:
                    self._after_fill(filled)
            return
        if index is None:
            return
        self._painting = True
        self._queue_stroke(index)

    def mouseMoveEvent(self, event) -> None:
        pos = event.position()
        if self._panning:
            self._offset = self._pan_offset + (pos - self._pan_origin)
            self.update()
            return
        if self._bomb_armed:
            self._hover = pos
            self.update()
            return
        if not self._painting:
            return
        index = self.cell_at(pos)
        if index is not None:
            self._queue_stroke(index)

    def mouseReleaseEvent(self, event) -> None:
        self._panning = False
        if self._painting:
            self._painting = False
            self._flush_stroke()
            self.update()

    def wheelEvent(self, event) -> None:
        factor = 1.1 if event.angleDelta().y() > 0 else 0.9
        self.zoom_by(factor, event.position())
        event.accept()

    # -- rendering ----------------------------------------------------------

    def _rebuild_image(self) -> None:
        session = self._manager.active
        if session is None:
            self._image = None
            return
        mask = session.engine.fill_mask
        rgb = np.ascontiguousarray(cell_colors(session.snapshot, mask))
        h, w, _ = rgb.shape
        # QImage does not copy; keep the buffer alive alongside it.
        self._image_bytes = rgb.tobytes()
        self._image = QImage(self._image_bytes, w, h, 3 * w, QImage.Format_RGB888)

    def paintEvent(self, event) -> None:
        super().paintEvent(event)
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(BoardColors.BG))
        session = self._manager.active
        if session is None or self._image is None:
            return

        snap = session.snapshot
        engine = session.engine
        cell = self._cell_px
        painter.translate(self._offset)
        painter.scale(self._zoom, self._zoom)
        painter.setRenderHint(QPainter.SmoothPixmapTransform, False)
        painter.drawImage(QRectF(0, 0, snap.cols * cell, snap.rows * cell), self._image)

        # Only touch cells inside the viewport.
        x0 = max(0, int((-self._offset.x() / self._zoom) // cell))
        y0 = max(0, int((-self._offset.y() / self._zoom) // cell))
        x1 = min(snap.cols, int(((self.width() - self._offset.x()) / self._zoom) // cell) + 1)
        y1 = min(snap.rows, int(((self.height() - self._offset.y()) / self._zoom) // cell) + 1)
        mask = engine.fill_mask
        selected = engine.selected
        highlight = QColor(108, 92, 231, 46)
        draw_labels = cell * self._zoom >= MIN_LABEL_PX

        font = painter.font()
        font.setPixelSize(max(6, cell // 2))
        font.setBold(True)
        painter.setFont(font)
        painter.setPen(QColor(BoardColors.CELL_LABEL))
        for y in range(y0, y1):
            for x in range(x0, x1):
                i = y * snap.cols + x
                if mask[i]:
                    continue
                label = int(snap.label_grid[i])
                rect = QRectF(x * cell, y * cell, cell, cell)
                if label == selected and not engine.is_hidden(selected):
                    painter.fillRect(rect, highlight)
                if draw_labels:
                    painter.drawText(rect, Qt.AlignCenter, str(label + 1))

        if self._show_grid and not self._painting:
            pen = QPen(QColor(BoardColors.GRID_LINE))
            pen.setCosmetic(True)
            painter.setPen(pen)
            for x in range(x0, x1 + 1):
                painter.drawLine(QPointF(x * cell, y0 * cell), QPointF(x * cell, y1 * cell))
            for y in range(y0, y1 + 1):
                painter.drawLine(QPointF(x0 * cell, y * cell), QPointF(x1 * cell, y * cell))

        if self._bomb_armed and self._hover is not None:
            painter.resetTransform()
            radius_px = bomb_radius(snap.cols) * cell * self._zoom
            ring = QPen(QColor(124, 58, 237, 153), 2, Qt.DashLine)
            painter.setPen(ring)
            painter.setBrush(QColor(124, 58, 237, 20))
            painter.drawEllipse(self._hover, radius_px, radius_px)
