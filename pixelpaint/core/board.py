"""Board generation: downsample an image, quantize it, and build the puzzle records."""

from __future__ import annotations

import io
import math
import logging
import random
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image, ImageOps

from pixelpaint.core.codec import encode_bytes
from pixelpaint.core.models import RGB, ArtworkMeta, GeneratedBoard, Progress, Snapshot, now_ms
from pixelpaint.core.quantizer import clamp_clusters, clamp_iterations, quantize

logger = logging.getLogger(__name__)

THUMBNAIL_WIDTH = 256

_TITLE_ADJECTIVES = [
    "Vivid", "Retro", "Dreamy", "Neon", "Cosmic", "Pixel", "Sunny", "Velvet", "Arcade", "Prismatic",
    "Zen", "Turbo", "Mint", "Ivory", "Crimson", "Azure", "Blossom", "Nimbus", "Quantum", "Amber",
]
_TITLE_NOUNS = [
    "Meadow", "Orbit", "Lagoon", "Nova", "Canvas", "Bloom", "Valley", "Galaxy", "Temple", "Harbor",
    "Forest", "Mirage", "Mosaic", "Meteor", "Chai", "Nimbus", "Drift", "Aurora", "Cascade", "Vertex",
]
_TAIL_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def half_up(value: float) -> int:
    """Round to the nearest integer, halves upward."""
    return int(math.floor(value + 0.5))


def luminance(rgb: np.ndarray) -> np.ndarray:
    """Rec. 709 relative luminance of (..., 3) RGB rows."""
    rgb = np.asarray(rgb, dtype=np.float64)
    return 0.2126 * rgb[..., 0] + 0.7152 * rgb[..., 1] + 0.0722 * rgb[..., 2]


def grid_size(width: int, height: int, cells_across: int) -> Tuple[int, int]:
    """Target grid (across, down) for an image, never wider than the image itself."""
    if width < 1 or height < 1:
        raise ValueError(f"invalid image size {width}x{height}")
    across = max(1, min(int(cells_across), width))
    down = max(1, half_up(height / width * across))
    return across, down


def bomb_radius(cols: int) -> int:
    """Area-fill radius in cells for a board *cols* wide."""
    return max(1, cols // 20)


def sort_palette(centers: np.ndarray, labels: np.ndarray) -> Tuple[List[RGB], np.ndarray]:
    """Order cluster centers by ascending luminance and remap labels to match.

    Returns the rounded palette and the remapped uint8 label grid.
    """
    centers = np.asarray(centers, dtype=np.float64)
    order = np.argsort(luminance(centers), kind="stable")
    remap = np.empty(len(order), dtype=np.uint8)
    remap[order] = np.arange(len(order), dtype=np.uint8)
    palette: List[RGB] = [
        tuple(int(v) for v in np.clip(np.floor(centers[i] + 0.5), 0, 255)) for i in order
    ]
    return palette, remap[np.asarray(labels, dtype=np.intp)]


def generate_title(rng: Optional[random.Random] = None) -> str:
    """Random display title such as ``"Neon Harbor #4K2Q"``."""
    rng = rng or random.Random()
    tail = "".join(rng.choice(_TAIL_ALPHABET) for _ in range(4))
    return f"{rng.choice(_TITLE_ADJECTIVES)} {rng.choice(_TITLE_NOUNS)} #{tail}"


def new_artwork_id() -> str:
    return uuid.uuid4().hex


def load_image(path: Path) -> Image.Image:
    """Open an image file upright (EXIF orientation applied) as RGB."""
    with Image.open(path) as im0:
        im = ImageOps.exif_transpose(im0)
        return im.convert("RGB")


def cell_colors(snapshot: Snapshot, mask: np.ndarray) -> np.ndarray:
    """(rows, cols, 3) uint8 image: filled cells in palette colour, others white."""
    palette = np.asarray(snapshot.palette, dtype=np.uint8)
    rgb = np.full((snapshot.total_cells, 3), 255, dtype=np.uint8)
    filled = np.asarray(mask) != 0
    rgb[filled] = palette[snapshot.label_grid[filled]]
    return rgb.reshape(snapshot.rows, snapshot.cols, 3)


def render_thumbnail(snapshot: Snapshot, mask: np.ndarray, target_width: int = THUMBNAIL_WIDTH) -> str:
    """Base64 PNG preview of the board, scaled with nearest-neighbour sampling."""
    base = Image.fromarray(cell_colors(snapshot, mask))
    scale = target_width / snapshot.cols
    w = max(1, half_up(snapshot.cols * scale))
    h = max(1, half_up(snapshot.rows * scale))
    thumb = base.resize((w, h), resample=Image.Resampling.NEAREST)
    buf = io.BytesIO()
    thumb.save(buf, format="PNG")
    return encode_bytes(buf.getvalue())


class BoardGenerator:
    """Turns a source image into a numbered puzzle."""

    def __init__(
        self,
        cells_across: int = 69,
        palette_size: int = 12,
        iterations: int = 10,
        *,
        seed: Optional[int] = None,
        thumbnail_width: int = THUMBNAIL_WIDTH,
    ) -> None:
        if cells_across < 1:
            raise ValueError("cells_across must be at least 1")
        self.cells_across = int(cells_across)
        self.palette_size = clamp_clusters(palette_size)
        self.iterations = clamp_iterations(iterations)
        self.seed = seed
        self.thumbnail_width = thumbnail_width

    def downsample(self, image: Image.Image) -> np.ndarray:
        """Area-average the image down to the target grid; returns (down, across, 3) uint8."""
        across, down = grid_size(image.width, image.height, self.cells_across)
        small = image.convert("RGB").resize((across, down), resample=Image.Resampling.BOX)
        return np.asarray(small, dtype=np.uint8)

    def build_snapshot(self, image: Image.Image) -> Snapshot:
        pixels = self.downsample(image)
        down, across, _ = pixels.shape
        result = quantize(
            pixels.reshape(-1, 3),
            self.palette_size,
            self.iterations,
            seed=self.seed,
        )
        palette, label_grid = sort_palette(result.centers, result.labels)
        return Snapshot(cols=across, rows=down, palette=palette, label_grid=label_grid)

    def generate(self, image: Image.Image, title: Optional[str] = None) -> GeneratedBoard:
        snapshot = self.build_snapshot(image)
        progress = Progress.fresh(snapshot)
        created = now_ms()
        title = (title or "").strip() or generate_title(
            random.Random(self.seed) if self.seed is not None else None
        )
        meta = ArtworkMeta(
            id=new_artwork_id(),
            title=title,
            created_at=created,
            updated_at=created,
            cols=snapshot.cols,
            rows=snapshot.rows,
            progress_percent=0,
            thumbnail=render_thumbnail(snapshot, progress.fill_mask, self.thumbnail_width),
        )
        empty = int(np.count_nonzero(progress.hidden_flags))
        logger.info(
            "Generated board %r: %dx%d cells, %d colours (%d empty)",
            title,
            snapshot.cols,
            snapshot.rows,
            snapshot.palette_size,
            empty,
        )
        return GeneratedBoard(meta=meta, snapshot=snapshot, progress=progress)
