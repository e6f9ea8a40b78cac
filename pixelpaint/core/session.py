from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

from PIL import Image

from pixelpaint.core.autosave import AutosaveScheduler
from pixelpaint.core.board import BoardGenerator, bomb_radius, render_thumbnail
from pixelpaint.core.engine import PaintEngine
from pixelpaint.core.export import render_board, save_png
from pixelpaint.core.models import ArtworkMeta, Progress, Snapshot, now_ms
from pixelpaint.core.settings import Settings
from pixelpaint.core.storage import PersistenceStore

logger = logging.getLogger(__name__)

SAVE_IDLE = "idle"
SAVE_SAVING = "saving"
SAVE_SAVED = "saved"


class ArtworkSession:
    """An open artwork: its gallery entry, immutable snapshot and live paint engine."""

    def __init__(self, meta: ArtworkMeta, snapshot: Snapshot, engine: PaintEngine) -> None:
        self.meta = meta
        self.snapshot = snapshot
        self.engine = engine

    @property
    def id(self) -> str:
        return self.meta.id

    @property
    def title(self) -> str:
        return self.meta.title


class SessionManager:
    """Keeps exactly one artwork open and persists its progress.

    Opening or generating another artwork first saves the outgoing one, then
    invalidates any autosave still queued for it. Mutations go through the
    paint methods here so they can schedule a debounced autosave.
    """

    def __init__(
        self,
        store: PersistenceStore,
        settings: Optional[Settings] = None,
        *,
        scheduler: Optional[AutosaveScheduler] = None,
    ) -> None:
        self._store = store
        self._settings = settings or Settings()
        self._session: Optional[ArtworkSession] = None
        self._save_state = SAVE_IDLE
        self._save_state_listeners: List[Callable[[str], None]] = []
        self._completion_listeners: List[Callable[[ArtworkSession], None]] = []
        self._selection_listeners: List[Callable[[int], None]] = []
        self._scheduler = scheduler or AutosaveScheduler(
            self._autosave,
            self.current_id,
            delay_ms=self._settings.autosave_delay_ms,
            cooldown_ms=self._settings.autosave_cooldown_ms,
        )
        self._scheduler.enabled = self._settings.autosave

    # -- state ------------------------------------------------------------

    @property
    def store(self) -> PersistenceStore:
        return self._store

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def scheduler(self) -> AutosaveScheduler:
        return self._scheduler

    @property
    def active(self) -> Optional[ArtworkSession]:
        return self._session

    @property
    def save_state(self) -> str:
        return self._save_state

    def current_id(self) -> Optional[str]:
        return self._session.id if self._session is not None else None

    def gallery(self) -> List[ArtworkMeta]:
        return self._store.load_list()

    def set_autosave(self, enabled: bool) -> None:
        self._settings.autosave = enabled
        self._scheduler.enabled = enabled
        if not enabled:
            self._scheduler.cancel()

    def add_save_state_listener(self, callback: Callable[[str], None]) -> None:
        self._save_state_listeners.append(callback)

    def add_completion_listener(self, callback: Callable[[ArtworkSession], None]) -> None:
        self._completion_listeners.append(callback)

    def add_selection_listener(self, callback: Callable[[int], None]) -> None:
        """Called with the new colour whenever the open artwork's selection changes."""
        self._selection_listeners.append(callback)

    def _set_save_state(self, state: str) -> None:
        self._save_state = state
        for callback in list(self._save_state_listeners):
            callback(state)

    # -- lifecycle --------------------------------------------------------

    def generator(self) -> BoardGenerator:
        s = self._settings
        return BoardGenerator(
            s.cells_across,
            s.palette_size,
            s.iterations,
            seed=s.seed,
            thumbnail_width=s.thumbnail_width,
        )

    def create_from_image(self, image: Image.Image, title: Optional[str] = None) -> ArtworkSession:
        """Generate a board from *image*, persist it, and make it the open artwork."""
        self._finalize_save("switch-new")
        board = self.generator().generate(image, title)
        self._store.create_new(board.meta, board.snapshot, board.progress)
        return self._activate(board.meta, board.snapshot, board.progress)

    def open(self, artwork_id: str) -> Optional[ArtworkSession]:
        """Open a saved artwork. Returns None (and leaves nothing half-open) if its records are missing."""
        self._finalize_save("switch-open")
        snapshot = self._store.load_snapshot(artwork_id)
        progress = self._store.load_progress(artwork_id, snapshot) if snapshot is not None else None
        if snapshot is None or progress is None:
            logger.warning("Cannot open artwork %s: snapshot or progress missing", artwork_id)
            return None
        meta = self._store.get_meta(artwork_id)
        if meta is None:
            stamp = now_ms()
            meta = ArtworkMeta(artwork_id, "", stamp, stamp, snapshot.cols, snapshot.rows)
        logger.info("Opened artwork %s (%r)", artwork_id, meta.title)
        return self._activate(meta, snapshot, progress)

    def close(self) -> None:
        self._finalize_save("close")
        self._session = None

    def delete(self, artwork_id: str) -> None:
        self._store.delete(artwork_id)
        if self.current_id() == artwork_id:
            self._scheduler.cancel()
            self._session = None

    def _activate(self, meta: ArtworkMeta, snapshot: Snapshot, progress: Progress) -> ArtworkSession:
        engine = PaintEngine(
            snapshot,
            progress,
            area_fill_policy=self._settings.fill_policy,
            brush_size=self._settings.brush_size,
        )
        session = ArtworkSession(meta, snapshot, engine)
        engine.add_completion_listener(lambda: self._on_completed(session))
        engine.add_selection_listener(self._on_selection)
        self._session = session
        return session

    def _finalize_save(self, reason: str) -> None:
        if self._session is None:
            return
        self._scheduler.invalidate()
        self.save(reason)

    # -- saving -----------------------------------------------------------

    def save(self, reason: str = "manual", artwork_id: Optional[str] = None) -> bool:
        """Write the open artwork's progress and refresh its gallery entry.

        Does nothing unless *artwork_id* (default: the open one) is the open
        artwork. Write failures are logged, never raised.
        """
        session = self._session
        target = artwork_id or self.current_id()
        if session is None or target != session.id:
            return False

        self._set_save_state(SAVE_SAVING)
        try:
            engine = session.engine
            progress = engine.progress()
            percent = engine.progress_percent
            meta = session.meta
            meta.progress_percent = percent
            meta.updated_at = now_ms()
            if percent == 100:
                meta.thumbnail = render_thumbnail(
                    session.snapshot, progress.fill_mask, self._settings.thumbnail_width
                )
            self._store.save_progress(session.id, progress)
            self._store.update_meta(meta)
        except (OSError, ValueError) as e:
            logger.warning("Save (%s) of %s failed: %s", reason, session.id, e)
            self._set_save_state(SAVE_IDLE)
            return False
        logger.debug("Saved %s (%s, %d%%)", session.id, reason, percent)
        self._set_save_state(SAVE_SAVED)
        return True

    def settle_save_state(self) -> None:
        """Return the indicator to idle once a 'saved' flash has been shown."""
        if self._save_state == SAVE_SAVED:
            self._set_save_state(SAVE_IDLE)

    def mark_dirty(self) -> None:
        self._scheduler.schedule(self.current_id())

    def _autosave(self, artwork_id: str) -> None:
        self.save("autosave", artwork_id)

    def _on_selection(self, color: int) -> None:
        for callback in list(self._selection_listeners):
            callback(color)

    def _on_completed(self, session: ArtworkSession) -> None:
        if session is not self._session:
            return
        if self._settings.autosave:
            self.save("completed")
        for callback in list(self._completion_listeners):
            callback(session)

    # -- painting ---------------------------------------------------------

    def paint_at(self, index: int) -> List[int]:
        """Brush stroke sample at *index* with the current brush and colour."""
        if self._session is None:
            return []
        filled = self._session.engine.paint_brush(index)
        if filled:
            self.mark_dirty()
        return filled

    def drop_bomb(self, index: int) -> List[int]:
        if self._session is None:
            return []
        engine = self._session.engine
        filled = engine.area_fill(index, bomb_radius(self._session.snapshot.cols))
        if filled:
            self.mark_dirty()
        return filled

    def reset_fills(self) -> None:
        if self._session is None:
            return
        self._session.engine.reset()
        self.mark_dirty()

    def rename(self, title: str) -> None:
        if self._session is None:
            return
        self._session.meta.title = title.strip() or self._session.meta.title
        self.mark_dirty()

    # -- export -----------------------------------------------------------

    def export_png(self, path: Path, artwork_id: Optional[str] = None, draw_grid: bool = True) -> Optional[Path]:
        """Render the open artwork (or a saved one by id) to a PNG file."""
        artwork_id = artwork_id or self.current_id()
        if artwork_id is None:
            return None
        if self._session is not None and artwork_id == self._session.id:
            snapshot = self._session.snapshot
            mask = self._session.engine.fill_mask
        else:
            snapshot = self._store.load_snapshot(artwork_id)
            progress = self._store.load_progress(artwork_id, snapshot) if snapshot is not None else None
            if snapshot is None or progress is None:
                logger.warning("Cannot export artwork %s: records missing", artwork_id)
                return None
            mask = progress.fill_mask
        image = render_board(snapshot, mask, self._settings.export_cell_px, draw_grid)
        return save_png(image, path)
