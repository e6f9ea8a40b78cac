"""Shared fixtures for the pixelpaint test suite."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np
import pytest
from PySide6.QtCore import QCoreApplication

from pixelpaint.core.models import Snapshot


PALETTE3 = [(0, 0, 0), (128, 128, 128), (255, 255, 255)]


def make_snapshot(
    cols: int,
    rows: int,
    labels: Sequence[int],
    palette: Optional[List[tuple]] = None,
) -> Snapshot:
    return Snapshot(cols=cols, rows=rows, palette=list(palette or PALETTE3), label_grid=np.asarray(labels))


@pytest.fixture(scope="session")
def qapp():
    """A QCoreApplication so QObject timers can be created without a display."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the data directory at a temp dir so tests never touch ~/.pixelpaint."""
    home = tmp_path / "home"
    monkeypatch.setenv("PIXELPAINT_HOME", str(home))
    return home
