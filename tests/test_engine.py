"""Tests for pixelpaint.core.engine – fill rules, brush, bomb and selection."""

from __future__ import annotations

import numpy as np
import pytest

from conftest import make_snapshot
from pixelpaint.core.engine import (
    MAX_BRUSH_SIZE,
    AreaFillPolicy,
    PaintEngine,
    StrokeBuffer,
    disk_offsets,
)
from pixelpaint.core.models import Progress

PALETTE5 = [(0, 0, 0), (50, 50, 50), (100, 100, 100), (150, 150, 150), (200, 200, 200)]


def _engine(cols, rows, labels, palette=None, **kwargs) -> PaintEngine:
    snap = make_snapshot(cols, rows, labels, palette)
    return PaintEngine(snap, Progress.fresh(snap), **kwargs)


# ---------------------------------------------------------------------------
# disk offsets
# ---------------------------------------------------------------------------

class TestDiskOffsets:
    def test_radius_zero_is_single_cell(self):
        assert disk_offsets(0) == [(0, 0)]

    def test_radius_one_is_plus_shape(self):
        assert disk_offsets(1) == [(0, -1), (-1, 0), (0, 0), (1, 0), (0, 1)]

    def test_radius_two_count(self):
        assert len(disk_offsets(2)) == 13

    def test_row_major(self):
        offs = disk_offsets(3)
        assert offs == sorted(offs, key=lambda o: (o[1], o[0]))


# ---------------------------------------------------------------------------
# paint_cell
# ---------------------------------------------------------------------------

class TestPaintCell:
    def test_fills_matching_cell(self):
        e = _engine(2, 1, [0, 1])
        assert e.paint_cell(0) == [0]
        assert e.is_filled(0)
        assert e.remaining(0) == 0

    def test_wrong_colour_is_noop(self):
        e = _engine(2, 1, [0, 1])
        assert e.paint_cell(1) == []
        assert not e.is_filled(1)
        assert e.remaining(1) == 1

    def test_already_filled_is_noop(self):
        e = _engine(3, 1, [0, 0, 1])
        e.paint_cell(0)
        assert e.paint_cell(0) == []
        assert e.remaining(0) == 1

    @pytest.mark.parametrize("index", [-1, 2, 100])
    def test_out_of_range_is_noop(self, index):
        e = _engine(2, 1, [0, 1])
        assert e.paint_cell(index) == []
        assert e.filled_count == 0

    def test_explicit_colour(self):
        e = _engine(2, 1, [0, 1])
        assert e.paint_cell(1, color=1) == [1]


# ---------------------------------------------------------------------------
# paint_brush
# ---------------------------------------------------------------------------

class TestPaintBrush:
    def test_size_one_touches_exactly_one_cell(self):
        e = _engine(3, 3, [0] * 9)
        assert e.brush_radius == 0
        assert e.paint_brush(4) == [4]
        assert e.filled_count == 1

    def test_radius_one_plus_shape_row_major(self):
        e = _engine(3, 3, [0] * 9, brush_size=2)
        assert e.paint_brush(4) == [1, 3, 4, 5, 7]

    def test_clipped_at_edges(self):
        e = _engine(3, 3, [0] * 9, brush_size=2)
        assert e.paint_brush(0) == [0, 1, 3]

    def test_does_not_wrap_rows(self):
        e = _engine(3, 2, [0] * 6, brush_size=2)
        # Cell 2 is the right edge of row 0; cell 3 starts row 1.
        assert 3 not in e.paint_brush(2)

    def test_only_selected_label(self):
        e = _engine(3, 1, [0, 1, 0], brush_size=2)
        assert e.paint_brush(1) == [0, 2]
        assert not e.is_filled(1)

    def test_counts_track_fills(self):
        e = _engine(3, 1, [0, 0, 1], brush_size=3)
        e.paint_brush(0)
        assert e.remaining(0) == 0
        assert e.remaining(1) == 1

    def test_offsets_are_cached(self):
        e = _engine(3, 3, [0] * 9)
        assert e.brush_offsets(2) is e.brush_offsets(2)


class TestBrushSize:
    def test_clamped(self):
        e = _engine(1, 1, [0], brush_size=99)
        assert e.brush_size == MAX_BRUSH_SIZE
        e.brush_size = 0
        assert e.brush_size == 1

    def test_grow_and_shrink(self):
        e = _engine(1, 1, [0])
        assert e.grow_brush() == 2
        assert e.brush_radius == 1
        assert e.shrink_brush() == 1
        assert e.shrink_brush() == 1


# ---------------------------------------------------------------------------
# area_fill
# ---------------------------------------------------------------------------

class TestAreaFill:
    def test_all_colours_by_default(self):
        e = _engine(3, 1, [0, 1, 2])
        assert e.area_fill(1, 1) == [0, 1, 2]
        assert e.is_complete

    def test_selected_colour_policy(self):
        e = _engine(3, 1, [0, 1, 0], area_fill_policy=AreaFillPolicy.SELECTED_COLOR)
        assert e.area_fill(1, 1) == [0, 2]
        assert not e.is_filled(1)

    def test_skips_filled_cells(self):
        e = _engine(3, 1, [0, 0, 1])
        e.paint_cell(0)
        assert e.area_fill(1, 1) == [1, 2]

    def test_invalid_center(self):
        e = _engine(2, 1, [0, 1])
        assert e.area_fill(5, 1) == []

    def test_monotonic_mask(self):
        e = _engine(4, 4, [i % 3 for i in range(16)], brush_size=2)
        before = e.progress().fill_mask.copy()
        for center in (0, 5, 10, 15):
            e.paint_brush(center)
            e.area_fill(center, 1)
            after = e.progress().fill_mask
            assert not np.any((before == 1) & (after == 0))
            before = after.copy()


# ---------------------------------------------------------------------------
# selection
# ---------------------------------------------------------------------------

class TestSelection:
    def test_initial_selection_skips_hidden(self):
        e = _engine(2, 1, [1, 2])
        assert e.is_hidden(0)
        assert e.selected == 1

    def test_select_refuses_hidden(self):
        e = _engine(2, 1, [1, 2])
        assert not e.select(0)
        assert e.select(2)
        assert e.selected == 2

    def test_select_refuses_unknown(self):
        e = _engine(2, 1, [0, 1])
        assert not e.select(7)
        assert e.selected == 0

    def test_exhausting_selected_colour_advances(self):
        e = _engine(5, 1, [0, 1, 2, 3, 4], PALETTE5)
        assert e.select(3)
        e.paint_cell(3)
        assert e.is_hidden(3)
        assert e.selected == 4

    def test_advance_wraps_past_hidden(self):
        e = _engine(5, 1, [0, 1, 2, 3, 4], PALETTE5)
        e.select(4)
        e.paint_cell(4)
        assert e.selected == 0
        e.select(3)
        e.paint_cell(3)
        assert e.selected == 0

    def test_advance_wraps_to_zero_when_next_hidden(self):
        e = _engine(6, 1, [0, 1, 2, 3, 4, 4], PALETTE5)
        e.area_fill(5, 0)
        e.area_fill(4, 0)
        assert e.is_hidden(4)
        e.select(3)
        e.paint_cell(3)
        assert e.is_hidden(3)
        assert e.selected == 0

    def test_exhausting_other_colour_keeps_selection(self):
        e = _engine(3, 1, [0, 0, 1])
        e.paint_cell(2, color=1)
        assert e.is_hidden(1)
        assert e.selected == 0

    def test_selection_listener(self):
        e = _engine(2, 1, [0, 1])
        seen = []
        e.add_selection_listener(seen.append)
        e.paint_cell(0)
        assert seen == [1]

    def test_all_hidden_leaves_selection(self):
        e = _engine(2, 1, [0, 1])
        e.paint_cell(0)
        e.paint_cell(1)
        assert e.is_complete
        assert e.selected == 1

    def test_hidden_set_once(self):
        e = _engine(2, 1, [0, 1])
        e.paint_cell(0)
        e.area_fill(0, 0)
        assert e.remaining(0) == 0
        assert e.visible_colors() == [1]

    def test_remaining_unknown_colour(self):
        e = _engine(2, 1, [0, 1])
        assert e.remaining(-1) == 0
        assert e.remaining(3) == 0
        assert e.remaining(1) == 1

    def test_next_available(self):
        e = _engine(3, 1, [0, 1, 2])
        assert e.next_available(2) == 0
        assert e.next_available(0) == 1


# ---------------------------------------------------------------------------
# completion and reset
# ---------------------------------------------------------------------------

class TestCompletion:
    def test_fires_once(self):
        e = _engine(2, 1, [0, 1])
        calls = []
        e.add_completion_listener(lambda: calls.append(1))
        e.paint_cell(0)
        assert calls == []
        e.paint_cell(1)
        assert calls == [1]
        e.area_fill(0, 1)
        assert calls == [1]

    def test_refires_after_reset(self):
        e = _engine(2, 1, [0, 1])
        calls = []
        e.add_completion_listener(lambda: calls.append(1))
        e.area_fill(0, 1)
        e.reset()
        e.area_fill(0, 1)
        assert calls == [1, 1]

    def test_opening_complete_board_does_not_fire(self):
        snap = make_snapshot(2, 1, [0, 1])
        progress = Progress(np.ones(2, dtype=np.uint8), np.zeros(3), np.ones(3))
        e = PaintEngine(snap, progress)
        calls = []
        e.add_completion_listener(lambda: calls.append(1))
        e.area_fill(0, 1)
        assert calls == []
        assert e.progress_percent == 100


class TestReset:
    def test_restores_totals(self):
        e = _engine(4, 1, [0, 0, 1, 2], brush_size=2)
        e.paint_brush(0)
        e.area_fill(3, 0)
        e.reset()
        assert e.filled_count == 0
        assert [e.remaining(c) for c in range(3)] == [2, 1, 1]
        assert e.visible_colors() == [0, 1, 2]
        assert e.selected == 1

    def test_unused_colour_stays_hidden(self):
        e = _engine(2, 1, [0, 0])
        e.reset()
        assert e.is_hidden(2)
        assert not e.is_hidden(0)


class TestProgressSnapshot:
    def test_percent_rounds(self):
        e = _engine(3, 1, [0, 0, 0])
        e.paint_cell(0)
        assert e.progress_percent == 33
        e.paint_cell(1)
        assert e.progress_percent == 67

    def test_progress_is_a_copy(self):
        e = _engine(2, 1, [0, 1])
        p = e.progress()
        p.fill_mask[0] = 1
        assert not e.is_filled(0)

    def test_fill_mask_view_is_read_only(self):
        e = _engine(2, 1, [0, 1])
        with pytest.raises(ValueError):
            e.fill_mask[0] = 1

    def test_engine_repairs_counts(self):
        snap = make_snapshot(2, 1, [0, 1])
        e = PaintEngine(snap, Progress(np.array([1, 0]), np.array([]), np.array([])))
        assert e.remaining(0) == 0
        assert e.is_hidden(0)
        assert e.selected == 1


# ---------------------------------------------------------------------------
# StrokeBuffer
# ---------------------------------------------------------------------------

class TestStrokeBuffer:
    def test_coalesces_to_latest(self):
        applied = []
        buf = StrokeBuffer(lambda i: applied.append(i) or [i])
        assert buf.push(1) is True
        assert buf.push(2) is False
        assert buf.push(3) is False
        assert buf.flush() == [3]
        assert applied == [3]

    def test_flush_without_samples(self):
        buf = StrokeBuffer(lambda i: [i])
        assert buf.flush() == []

    def test_new_frame_after_flush(self):
        buf = StrokeBuffer(lambda i: [i])
        buf.push(1)
        buf.flush()
        assert buf.push(2) is True
        assert buf.pending

    def test_cancel(self):
        applied = []
        buf = StrokeBuffer(lambda i: applied.append(i) or [i])
        buf.push(4)
        buf.cancel()
        assert not buf.pending
        assert buf.flush() == []
        assert applied == []
