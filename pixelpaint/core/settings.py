from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from pixelpaint.core.engine import AreaFillPolicy, MAX_BRUSH_SIZE, MIN_BRUSH_SIZE
from pixelpaint.core.quantizer import clamp_clusters, clamp_iterations

logger = logging.getLogger(__name__)

HOME_ENV = "PIXELPAINT_HOME"
SETTINGS_FILE = "settings.yaml"


def data_dir() -> Path:
    """Root directory for saved artworks and settings (``$PIXELPAINT_HOME`` or ~/.pixelpaint)."""
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".pixelpaint"


@dataclass
class Settings:
    """User preferences and generation defaults."""

    cells_across: int = 69
    palette_size: int = 12
    iterations: int = 10
    autosave: bool = True
    show_grid: bool = True
    brush_size: int = 1
    area_fill_policy: str = AreaFillPolicy.ALL_COLORS.value
    autosave_delay_ms: int = 400
    autosave_cooldown_ms: int = 1000
    seed: Optional[int] = None
    thumbnail_width: int = 256
    export_cell_px: int = 24

    @property
    def fill_policy(self) -> AreaFillPolicy:
        return AreaFillPolicy(self.area_fill_policy)

    def clamped(self) -> "Settings":
        """Copy with every numeric value pulled back into its valid range."""
        policy = self.area_fill_policy
        if policy not in {p.value for p in AreaFillPolicy}:
            logger.warning("Unknown area_fill_policy %r, using %s", policy, AreaFillPolicy.ALL_COLORS.value)
            policy = AreaFillPolicy.ALL_COLORS.value
        return Settings(
            cells_across=max(1, int(self.cells_across)),
            palette_size=clamp_clusters(self.palette_size),
            iterations=clamp_iterations(self.iterations),
            autosave=bool(self.autosave),
            show_grid=bool(self.show_grid),
            brush_size=max(MIN_BRUSH_SIZE, min(MAX_BRUSH_SIZE, int(self.brush_size))),
            area_fill_policy=policy,
            autosave_delay_ms=max(0, int(self.autosave_delay_ms)),
            autosave_cooldown_ms=max(0, int(self.autosave_cooldown_ms)),
            seed=None if self.seed is None else int(self.seed),
            thumbnail_width=max(1, int(self.thumbnail_width)),
            export_cell_px=max(1, int(self.export_cell_px)),
        )


def load_settings(path: Optional[Path] = None) -> Settings:
    """Read settings YAML; a missing or unreadable file yields defaults.

    A file whose top level is not a mapping is a configuration error.
    """
    path = path or data_dir() / SETTINGS_FILE
    if not path.exists():
        return Settings()
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Could not load settings from %s: %s", path, e)
        return Settings()
    if raw is None:
        return Settings()
    if not isinstance(raw, dict):
        raise ValueError(f"{path.name}: expected a mapping of setting names to values")

    known = {f.name for f in fields(Settings)}
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning("%s: ignoring unknown setting %r", path.name, key)
            continue
        values[key] = value
    try:
        return Settings(**values).clamped()
    except (TypeError, ValueError) as e:
        logger.warning("%s: invalid settings (%s), using defaults", path.name, e)
        return Settings()


def save_settings(settings: Settings, path: Optional[Path] = None) -> None:
    path = path or data_dir() / SETTINGS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        path.write_text(yaml.safe_dump(asdict(settings), sort_keys=False), encoding="utf-8")
    except OSError as e:
        logger.warning("Could not save settings to %s: %s", path, e)
