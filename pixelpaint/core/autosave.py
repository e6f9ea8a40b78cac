"""Debounced autosave tied to the session that scheduled it."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer

logger = logging.getLogger(__name__)


class AutosaveScheduler(QObject):
    """Single-shot, restartable save timer keyed by a session token.

    Every :meth:`schedule` call restarts the quiet period (debounce). When the
    timer fires, the token it was scheduled for must still be the current
    session's token, otherwise the save is dropped. :meth:`invalidate` cancels
    any pending save and refuses new ones for ``cooldown_ms``; call it right
    after forcing the outgoing session's save on a switch.
    """

    def __init__(
        self,
        save: Callable[[str], None],
        current_token: Callable[[], Optional[str]],
        *,
        delay_ms: int = 400,
        cooldown_ms: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._save = save
        self._current_token = current_token
        self._delay_ms = delay_ms
        self._cooldown_s = cooldown_ms / 1000.0
        self._clock = clock
        self._blocked_until = 0.0
        self._pending_token: Optional[str] = None
        self.enabled = True

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._on_timeout)

    @property
    def pending_token(self) -> Optional[str]:
        return self._pending_token

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    def is_blocked(self) -> bool:
        return self._clock() < self._blocked_until

    def schedule(self, token: Optional[str]) -> bool:
        """(Re)start the quiet period for *token*. Returns False if refused."""
        if not self.enabled or token is None or self.is_blocked():
            return False
        self._pending_token = token
        self._timer.start(self._delay_ms)
        return True

    def cancel(self) -> None:
        self._timer.stop()
        self._pending_token = None

    def invalidate(self) -> None:
        self.cancel()
        self._blocked_until = self._clock() + self._cooldown_s

    def _on_timeout(self) -> None:
        token, self._pending_token = self._pending_token, None
        if token is None:
            return
        if token != self._current_token():
            logger.debug("Dropping stale autosave for %s", token)
            return
        self._save(token)
