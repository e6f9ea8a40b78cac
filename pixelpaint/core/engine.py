"""Paint engine: per-cell fill state, brush and area fill, colour auto-advance."""

from __future__ import annotations

import enum
import logging
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from pixelpaint.core.models import Progress, Snapshot

logger = logging.getLogger(__name__)

MIN_BRUSH_SIZE = 1
MAX_BRUSH_SIZE = 20

Offsets = List[Tuple[int, int]]


class AreaFillPolicy(enum.Enum):
    """Which cells an area fill ("bomb") may fill inside its radius."""

    ALL_COLORS = "all_colors"
    SELECTED_COLOR = "selected_color"


def disk_offsets(radius: int) -> Offsets:
    """Integer (dx, dy) offsets with dx² + dy² <= radius², row-major."""
    r = max(0, int(radius))
    r2 = r * r
    return [(dx, dy) for dy in range(-r, r + 1) for dx in range(-r, r + 1) if dx * dx + dy * dy <= r2]


class PaintEngine:
    """Owns the live fill state of one open artwork.

    Cells only ever go from unfilled to filled; :meth:`reset` is the single way
    back. Every mutating call returns the indices it filled, in visit order, so a
    renderer can repaint just those cells.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        progress: Progress,
        *,
        area_fill_policy: AreaFillPolicy = AreaFillPolicy.ALL_COLORS,
        brush_size: int = MIN_BRUSH_SIZE,
    ) -> None:
        progress = progress.normalized(snapshot)
        self._snapshot = snapshot
        self._labels = snapshot.label_grid
        self._mask = progress.fill_mask
        self._counts = progress.remaining_counts
        self._hidden = progress.hidden_flags
        self._cols = snapshot.cols
        self._rows = snapshot.rows
        self._offsets_cache: Dict[int, Offsets] = {}
        self._completion_listeners: List[Callable[[], None]] = []
        self._selection_listeners: List[Callable[[int], None]] = []
        self.area_fill_policy = area_fill_policy
        self._brush_size = MIN_BRUSH_SIZE
        self.brush_size = brush_size
        self._selected = 0
        self._selected = self._first_available()
        self._done = self.is_complete

    # -- state ------------------------------------------------------------

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def selected(self) -> int:
        """Palette index currently being painted."""
        return self._selected

    @property
    def brush_size(self) -> int:
        return self._brush_size

    @brush_size.setter
    def brush_size(self, size: int) -> None:
        self._brush_size = max(MIN_BRUSH_SIZE, min(MAX_BRUSH_SIZE, int(size)))

    @property
    def brush_radius(self) -> int:
        return self._brush_size - 1

    @property
    def filled_count(self) -> int:
        return int(np.count_nonzero(self._mask))

    @property
    def progress_percent(self) -> int:
        total = self._snapshot.total_cells
        return int(self.filled_count * 100 / total + 0.5)

    @property
    def is_complete(self) -> bool:
        return bool(self._mask.all())

    @property
    def fill_mask(self) -> np.ndarray:
        """Read-only view of the live mask."""
        view = self._mask.view()
        view.setflags(write=False)
        return view

    def is_filled(self, index: int) -> bool:
        return 0 <= index < self._mask.size and bool(self._mask[index])

    def is_hidden(self, color: int) -> bool:
        return 0 <= color < self._hidden.size and bool(self._hidden[color])

    def remaining(self, color: int) -> int:
        if not 0 <= color < self._counts.size:
            return 0
        return int(self._counts[color])

    def visible_colors(self) -> List[int]:
        return [c for c in range(self._hidden.size) if not self._hidden[c]]

    def progress(self) -> Progress:
        """Consistent copy of mask, counts and hidden flags for persistence."""
        return Progress(
            fill_mask=self._mask.copy(),
            remaining_counts=self._counts.copy(),
            hidden_flags=self._hidden.copy(),
        )

    # -- listeners --------------------------------------------------------

    def add_completion_listener(self, callback: Callable[[], None]) -> None:
        self._completion_listeners.append(callback)

    def add_selection_listener(self, callback: Callable[[int], None]) -> None:
        self._selection_listeners.append(callback)

    # -- selection --------------------------------------------------------

    def select(self, color: int) -> bool:
        """Make *color* the active colour. Hidden or unknown colours are refused."""
        if not 0 <= color < self._hidden.size or self._hidden[color]:
            return False
        self._set_selected(color)
        return True

    def grow_brush(self) -> int:
        self.brush_size = self._brush_size + 1
        return self._brush_size

    def shrink_brush(self) -> int:
        self.brush_size = self._brush_size - 1
        return self._brush_size

    def next_available(self, start: int) -> int:
        """First non-hidden colour after *start*, wrapping; *start* if all are hidden."""
        k = self._hidden.size
        for step in range(1, k + 1):
            c = (start + step) % k
            if not self._hidden[c]:
                return c
        return start

    def _first_available(self) -> int:
        if self._hidden.size and self._hidden[0]:
            return self.next_available(0)
        return 0

    def _set_selected(self, color: int) -> None:
        if color == self._selected:
            return
        self._selected = color
        for callback in list(self._selection_listeners):
            callback(color)

    # -- painting ---------------------------------------------------------

    def brush_offsets(self, radius: int) -> Offsets:
        radius = max(0, int(radius))
        offsets = self._offsets_cache.get(radius)
        if offsets is None:
            offsets = disk_offsets(radius)
            self._offsets_cache[radius] = offsets
        return offsets

    def paint_cell(self, index: int, color: Optional[int] = None) -> List[int]:
        """Fill one cell if it is unfilled and labelled *color* (default: selection)."""
        want = self._selected if color is None else color
        if not 0 <= index < self._mask.size:
            return []
        if self._mask[index] or self._labels[index] != want:
            return []
        self._fill(index)
        self._check_completion()
        return [index]

    def paint_brush(
        self, center: int, radius: Optional[int] = None, color: Optional[int] = None
    ) -> List[int]:
        """Fill every matching unfilled cell inside the brush disk around *center*."""
        want = self._selected if color is None else color
        if not 0 <= center < self._mask.size:
            return []
        r = self.brush_radius if radius is None else radius
        filled = [i for i in self._disk_cells(center, r) if not self._mask[i] and self._labels[i] == want]
        for i in filled:
            self._fill(i)
        if filled:
            self._check_completion()
        return filled

    def area_fill(self, center: int, radius: int) -> List[int]:
        """Bomb: fill unfilled cells inside the disk, filtered by :attr:`area_fill_policy`."""
        if not 0 <= center < self._mask.size:
            return []
        only = self._selected if self.area_fill_policy is AreaFillPolicy.SELECTED_COLOR else None
        filled = [
            i
            for i in self._disk_cells(center, radius)
            if not self._mask[i] and (only is None or self._labels[i] == only)
        ]
        for i in filled:
            self._fill(i)
        if filled:
            self._check_completion()
        return filled

    def reset(self) -> None:
        """Clear every fill and recompute counts from the label grid."""
        self._mask[:] = 0
        self._counts[:] = self._snapshot.color_totals()
        self._hidden[:] = (self._counts == 0).astype(np.uint8)
        self._done = False
        if self._hidden[self._selected]:
            self._set_selected(self._first_available())
        logger.info("Reset all fills (%d cells)", self._mask.size)

    def _disk_cells(self, center: int, radius: int) -> List[int]:
        cx, cy = center % self._cols, center // self._cols
        cells: List[int] = []
        for dx, dy in self.brush_offsets(radius):
            x, y = cx + dx, cy + dy
            if 0 <= x < self._cols and 0 <= y < self._rows:
                cells.append(y * self._cols + x)
        return cells

    def _fill(self, index: int) -> None:
        color = int(self._labels[index])
        self._mask[index] = 1
        if self._counts[color] == 0:
            return
        self._counts[color] -= 1
        if self._counts[color] == 0:
            self._hidden[color] = 1
            if color == self._selected:
                self._set_selected(self.next_available(color))

    def _check_completion(self) -> None:
        done = self.is_complete
        if done and not self._done:
            self._done = True
            logger.info("Board complete")
            for callback in list(self._completion_listeners):
                callback()
        elif not done:
            self._done = False


class StrokeBuffer:
    """Coalesces pointer samples so at most one brush stamp is applied per frame.

    Only the most recent cell survives until :meth:`flush`; intermediate samples
    of a fast drag are dropped, not interpolated.
    """

    def __init__(self, apply: Callable[[int], List[int]]) -> None:
        self._apply = apply
        self._latest: Optional[int] = None
        self._scheduled = False

    @property
    def pending(self) -> bool:
        return self._scheduled

    def push(self, index: int) -> bool:
        """Record a sample. Returns True when the caller must schedule a flush."""
        self._latest = index
        if self._scheduled:
            return False
        self._scheduled = True
        return True

    def flush(self) -> List[int]:
        self._scheduled = False
        index, self._latest = self._latest, None
        if index is None:
            return []
        return self._apply(index)

    def cancel(self) -> None:
        self._scheduled = False
        self._latest = None
