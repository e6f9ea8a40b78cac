"""PNG export of boards and of pixelated source images."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from pixelpaint.core.board import cell_colors, grid_size
from pixelpaint.core.models import Snapshot

LABEL_COLOR = (31, 41, 55)
GRID_COLOR = (0, 0, 0)


def _label_font(cell_px: int) -> ImageFont.FreeTypeFont:
    return ImageFont.load_default(size=max(6, cell_px // 2))


def render_board(snapshot: Snapshot, mask: np.ndarray, cell_px: int = 24, draw_grid: bool = True) -> Image.Image:
    """Draw the board: filled cells in colour, unfilled cells white with their 1-based number."""
    cell_px = max(1, int(cell_px))
    cells = Image.fromarray(cell_colors(snapshot, mask))
    image = cells.resize((snapshot.cols * cell_px, snapshot.rows * cell_px), resample=Image.Resampling.NEAREST)
    draw = ImageDraw.Draw(image)

    font = _label_font(cell_px)
    unfilled = np.flatnonzero(np.asarray(mask) == 0)
    for i in unfilled:
        x, y = int(i) % snapshot.cols, int(i) // snapshot.cols
        draw.text(
            (x * cell_px + cell_px / 2, y * cell_px + cell_px / 2),
            str(int(snapshot.label_grid[i]) + 1),
            fill=LABEL_COLOR,
            font=font,
            anchor="mm",
        )

    if draw_grid:
        w, h = image.size
        for gx in range(snapshot.cols + 1):
            x = min(gx * cell_px, w - 1)
            draw.line([(x, 0), (x, h - 1)], fill=GRID_COLOR, width=1)
        for gy in range(snapshot.rows + 1):
            y = min(gy * cell_px, h - 1)
            draw.line([(0, y), (w - 1, y)], fill=GRID_COLOR, width=1)
    return image


def pixelate_image(image: Image.Image, cells_across: int, cell_px: int = 24) -> Image.Image:
    """Blocky version of *image*: averaged down to the board grid, scaled up without smoothing."""
    across, down = grid_size(image.width, image.height, cells_across)
    small = image.convert("RGB").resize((across, down), resample=Image.Resampling.BOX)
    return small.resize((across * cell_px, down * cell_px), resample=Image.Resampling.NEAREST)


def save_png(image: Image.Image, path: Path) -> Path:
    path = Path(path)
    if path.suffix.lower() != ".png":
        path = path.with_suffix(".png")
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, format="PNG")
    return path
