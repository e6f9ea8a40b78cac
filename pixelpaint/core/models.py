"""Artwork records: list metadata, immutable puzzle snapshot, mutable progress."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

RGB = Tuple[int, int, int]


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


@dataclass
class ArtworkMeta:
    """Gallery entry for one artwork. Serialized into the ordered list record."""

    id: str
    title: str
    created_at: int
    updated_at: int
    cols: int
    rows: int
    progress_percent: int = 0
    thumbnail: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "cols": self.cols,
            "rows": self.rows,
            "progress": self.progress_percent,
        }
        if self.thumbnail is not None:
            record["thumb"] = self.thumbnail
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ArtworkMeta":
        if not isinstance(record, dict):
            raise TypeError(f"gallery entry must be an object, got {type(record).__name__}")
        thumb = record.get("thumb")
        return cls(
            id=str(record["id"]),
            title=str(record.get("title") or ""),
            created_at=int(record.get("createdAt") or 0),
            updated_at=int(record.get("updatedAt") or 0),
            cols=int(record.get("cols") or 0),
            rows=int(record.get("rows") or 0),
            progress_percent=int(record.get("progress") or 0),
            thumbnail=str(thumb) if thumb else None,
        )


@dataclass(frozen=True, eq=False)
class Snapshot:
    """Immutable puzzle definition.

    ``palette`` is ordered by ascending luminance and ``label_grid[i]`` is the
    palette index of cell ``i = y * cols + x``.
    """

    cols: int
    rows: int
    palette: List[RGB]
    label_grid: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if self.cols < 1 or self.rows < 1:
            raise ValueError(f"invalid grid size {self.cols}x{self.rows}")
        object.__setattr__(self, "palette", [tuple(int(v) for v in c) for c in self.palette])
        object.__setattr__(
            self, "label_grid", np.array(self.label_grid, dtype=np.uint8).reshape(-1)
        )
        if not self.palette:
            raise ValueError("palette must not be empty")
        if self.label_grid.shape != (self.cols * self.rows,):
            raise ValueError(
                f"label grid has {self.label_grid.size} cells, expected {self.cols * self.rows}"
            )
        if self.label_grid.size and int(self.label_grid.max()) >= len(self.palette):
            raise ValueError("label grid references a colour outside the palette")
        self.label_grid.setflags(write=False)

    @property
    def palette_size(self) -> int:
        return len(self.palette)

    @property
    def total_cells(self) -> int:
        return self.cols * self.rows

    def color_totals(self) -> np.ndarray:
        """Number of cells per palette index."""
        return np.bincount(self.label_grid, minlength=self.palette_size).astype(np.uint32)


@dataclass(eq=False)
class Progress:
    """Mutable fill state for one snapshot."""

    fill_mask: np.ndarray
    remaining_counts: np.ndarray
    hidden_flags: np.ndarray

    @classmethod
    def fresh(cls, snapshot: Snapshot) -> "Progress":
        counts = snapshot.color_totals()
        return cls(
            fill_mask=np.zeros(snapshot.total_cells, dtype=np.uint8),
            remaining_counts=counts,
            hidden_flags=(counts == 0).astype(np.uint8),
        )

    def normalized(self, snapshot: Snapshot) -> "Progress":
        """Return a copy sized for *snapshot*, recomputing counts/flags if they don't fit."""
        mask = (np.asarray(self.fill_mask, dtype=np.uint8) != 0).astype(np.uint8)
        if mask.shape != (snapshot.total_cells,):
            raise ValueError(
                f"fill mask has {mask.size} cells, expected {snapshot.total_cells}"
            )
        k = snapshot.palette_size
        counts = np.asarray(self.remaining_counts, dtype=np.uint32)
        if counts.shape != (k,):
            unfilled = snapshot.label_grid[mask == 0]
            counts = np.bincount(unfilled, minlength=k).astype(np.uint32)
        hidden = np.asarray(self.hidden_flags, dtype=np.uint8)
        if hidden.shape != (k,):
            hidden = (counts == 0).astype(np.uint8)
        return Progress(fill_mask=mask, remaining_counts=counts.copy(), hidden_flags=hidden.copy())

    def filled_count(self) -> int:
        return int(np.count_nonzero(self.fill_mask))


@dataclass
class GeneratedBoard:
    """Output of the board generator, ready to be registered with the store."""

    meta: ArtworkMeta
    snapshot: Snapshot
    progress: Progress
