from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from pixelpaint.core.codec import decode_u8, encode_bytes
from pixelpaint.core.models import ArtworkMeta, Progress, Snapshot, now_ms
from pixelpaint.core.settings import data_dir

logger = logging.getLogger(__name__)

_READ_ERRORS = (json.JSONDecodeError, OSError, ValueError, KeyError, TypeError, OverflowError)


def _uint_array(values: Any, dtype: Any) -> np.ndarray:
    """Integer list as an unsigned array. Raises ValueError for values the type cannot hold."""
    arr = np.asarray(values, dtype=np.int64)
    info = np.iinfo(dtype)
    if arr.size and (int(arr.min()) < info.min or int(arr.max()) > info.max):
        raise ValueError(f"value out of range for {np.dtype(dtype).name}")
    return arr.astype(dtype)


def dedupe_by_id(items: Iterable[ArtworkMeta]) -> List[ArtworkMeta]:
    """Drop repeated ids, keeping the first occurrence (list order is most-recent-first)."""
    seen: set[str] = set()
    out: List[ArtworkMeta] = []
    for meta in items:
        if meta.id in seen:
            continue
        seen.add(meta.id)
        out.append(meta)
    return out


def snapshot_to_record(snapshot: Snapshot) -> Dict[str, Any]:
    return {
        "cols": snapshot.cols,
        "rows": snapshot.rows,
        "palette": [list(c) for c in snapshot.palette],
        "labelGrid_b64": encode_bytes(snapshot.label_grid),
    }


def snapshot_from_record(record: Dict[str, Any]) -> Snapshot:
    return Snapshot(
        cols=int(record["cols"]),
        rows=int(record["rows"]),
        palette=[tuple(int(v) for v in c[:3]) for c in record["palette"]],
        label_grid=decode_u8(record["labelGrid_b64"]),
    )


def progress_to_record(progress: Progress) -> Dict[str, Any]:
    return {
        "mask_b64": encode_bytes(progress.fill_mask),
        "counts": [int(c) for c in progress.remaining_counts],
        "hidden": [int(h) for h in progress.hidden_flags],
    }


def progress_from_record(record: Dict[str, Any]) -> Progress:
    return Progress(
        fill_mask=decode_u8(record["mask_b64"]),
        remaining_counts=_uint_array(record.get("counts") or [], np.uint32),
        hidden_flags=_uint_array(record.get("hidden") or [], np.uint8),
    )


class PersistenceStore:
    """Saved artworks on disk, one JSON file per record.

    Layout under the data directory::

        v2/list.json        ordered gallery metadata, most recent first
        v2/<id>.snap.json   immutable puzzle definition
        v2/<id>.prog.json   fill progress
        v2/migrated         set once the legacy gallery has been imported
        gallery.json        legacy list (read only)
        items/<id>.json     legacy artwork blobs (read only)
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else data_dir()
        self._dir = self._base_dir / "v2"
        self._dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _list_path(self) -> Path:
        return self._dir / "list.json"

    def _snapshot_path(self, artwork_id: str) -> Path:
        return self._dir / f"{artwork_id}.snap.json"

    def _progress_path(self, artwork_id: str) -> Path:
        return self._dir / f"{artwork_id}.prog.json"

    def _migrated_flag(self) -> Path:
        return self._dir / "migrated"

    # -- reads --------------------------------------------------------------

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not read %s: %s", path, e)
            return None

    def load_list(self) -> List[ArtworkMeta]:
        payload = self._read_json(self._list_path())
        if not isinstance(payload, list):
            return []
        items: List[ArtworkMeta] = []
        for record in payload:
            try:
                items.append(ArtworkMeta.from_record(record))
            except _READ_ERRORS as e:
                logger.warning("Skipping malformed gallery entry %r: %s", record, e)
        return dedupe_by_id(items)

    def get_meta(self, artwork_id: str) -> Optional[ArtworkMeta]:
        for meta in self.load_list():
            if meta.id == artwork_id:
                return meta
        return None

    def load_snapshot(self, artwork_id: str) -> Optional[Snapshot]:
        payload = self._read_json(self._snapshot_path(artwork_id))
        if payload is None:
            return None
        try:
            return snapshot_from_record(payload)
        except _READ_ERRORS as e:
            logger.warning("Malformed snapshot for %s: %s", artwork_id, e)
            return None

    def load_progress(self, artwork_id: str, snapshot: Optional[Snapshot] = None) -> Optional[Progress]:
        """Load progress; with *snapshot* given, the result is also sized and repaired for it."""
        payload = self._read_json(self._progress_path(artwork_id))
        if payload is None:
            return None
        try:
            progress = progress_from_record(payload)
            if snapshot is not None:
                progress = progress.normalized(snapshot)
            return progress
        except _READ_ERRORS as e:
            logger.warning("Malformed progress for %s: %s", artwork_id, e)
            return None

    # -- writes -------------------------------------------------------------

    def _write_json(self, path: Path, payload: Any) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(payload), encoding="utf-8")
        tmp.replace(path)

    def save_list(self, items: Iterable[ArtworkMeta]) -> None:
        self._write_json(self._list_path(), [m.to_record() for m in dedupe_by_id(items)])

    def save_snapshot(self, artwork_id: str, snapshot: Snapshot) -> None:
        self._write_json(self._snapshot_path(artwork_id), snapshot_to_record(snapshot))

    def save_progress(self, artwork_id: str, progress: Progress) -> None:
        self._write_json(self._progress_path(artwork_id), progress_to_record(progress))

    def create_new(self, meta: ArtworkMeta, snapshot: Snapshot, progress: Progress) -> None:
        """Register a new artwork. The list entry is written last so it never dangles."""
        self.save_snapshot(meta.id, snapshot)
        self.save_progress(meta.id, progress)
        items = self.load_list()
        items.insert(0, meta)
        self.save_list(items)

    def update_meta(self, meta: ArtworkMeta) -> bool:
        """Replace the list entry with the same id in place. Returns False if absent."""
        items = self.load_list()
        for i, existing in enumerate(items):
            if existing.id == meta.id:
                items[i] = meta
                self.save_list(items)
                return True
        return False

    def delete(self, artwork_id: str) -> None:
        for path in (self._snapshot_path(artwork_id), self._progress_path(artwork_id)):
            path.unlink(missing_ok=True)
        self.save_list(m for m in self.load_list() if m.id != artwork_id)
        logger.info("Deleted artwork %s", artwork_id)

    # -- legacy import --------------------------------------------------------

    def is_migrated(self) -> bool:
        return self._migrated_flag().exists()

    def migrate_legacy(self) -> int:
        """Import the legacy gallery once. Returns how many artworks were imported.

        Items that fail to convert are skipped; the migrated flag is written
        regardless so a broken legacy gallery is not retried on every start.
        """
        legacy_list_path = self._base_dir / "gallery.json"
        if self.is_migrated() or not legacy_list_path.exists():
            return 0
        imported = 0
        try:
            legacy_list = self._read_json(legacy_list_path)
            if not isinstance(legacy_list, list):
                logger.warning("Legacy gallery %s is not a list; nothing imported", legacy_list_path)
                return 0
            known = {m.id for m in self.load_list()}
            for entry in legacy_list:
                try:
                    if self._migrate_item(entry, known):
                        imported += 1
                except _READ_ERRORS as e:
                    logger.warning("Skipping legacy artwork %r: %s", entry, e)
        finally:
            try:
                self._migrated_flag().write_text("1", encoding="utf-8")
            except OSError as e:
                logger.warning("Could not write migration flag: %s", e)
        logger.info("Imported %d legacy artwork(s)", imported)
        return imported

    def _migrate_item(self, entry: Dict[str, Any], known: set[str]) -> bool:
        artwork_id = str(entry["id"])
        if artwork_id in known:
            return False
        item = self._read_json(self._base_dir / "items" / f"{artwork_id}.json")
        if not isinstance(item, dict):
            return False

        cols, rows = int(item["cols"]), int(item["rows"])
        snapshot = Snapshot(
            cols=cols,
            rows=rows,
            palette=[tuple(int(v) for v in c[:3]) for c in item["palette"]],
            label_grid=_legacy_bytes(item["kIdx"]),
        )
        progress = Progress(
            fill_mask=_legacy_bytes(item["mask"]),
            remaining_counts=_uint_array(item.get("counts") or [], np.uint32),
            hidden_flags=_uint_array(item.get("hidden") or [], np.uint8),
        ).normalized(snapshot)
        stamp = now_ms()
        meta = ArtworkMeta(
            id=artwork_id,
            title=str(item.get("title") or entry.get("title") or ""),
            created_at=int(entry.get("createdAt") or stamp),
            updated_at=int(entry.get("updatedAt") or stamp),
            cols=cols,
            rows=rows,
            progress_percent=int(entry.get("progress") or 0),
            thumbnail=entry.get("thumb") or None,
        )
        self.create_new(meta, snapshot, progress)
        known.add(artwork_id)
        return True


def _legacy_bytes(value: Any) -> np.ndarray:
    """Legacy blobs store byte arrays as base64 text or as plain integer lists."""
    if isinstance(value, str):
        return decode_u8(value)
    return _uint_array(value, np.uint8)
