"""
Gesture gate.

Some presentation effects (an audio cue when the reveal completes) may only
run after the viewer has interacted with the display once.  ``GestureGate``
is the one owned place that knows whether that has happened: it is
created and torn down by whoever runs the display, and holds at most one
pending action that runs on the first gesture.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

Action = Callable[[], None]


class GestureGate:
    """Idempotent "ready after first gesture" flag with one pending action."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active = False
        self._ready = False
        self._pending: Optional[Action] = None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def init(self) -> None:
        with self._lock:
            if self._active:
                return
            self._active = True
        logger.debug("Gesture gate initialised")

    def teardown(self) -> None:
        """Drop the pending action and forget the gesture."""
        with self._lock:
            self._active = False
            self._ready = False
            dropped = self._pending is not None
            self._pending = None
        if dropped:
            logger.debug("Gesture gate torn down with a pending action")

    def notify_gesture(self) -> None:
        """Record a user gesture; the first one releases the pending action."""
        with self._lock:
            if not self._active or self._ready:
                return
            self._ready = True
            action, self._pending = self._pending, None
        if action is not None:
            action()

    def run_when_ready(self, action: Action) -> bool:
        """Run *action* now if ready, else keep it as the pending action.

        A newer pending action replaces an older one.  Returns True when the
        action ran immediately.
        """
        with self._lock:
            if not self._active:
                logger.debug("Gesture gate inactive; action dropped")
                return False
            if not self._ready:
                self._pending = action
                return False
        action()
        return True

    def cancel_pending(self, action: Action) -> bool:
        """Withdraw *action* if it is still the pending one."""
        with self._lock:
            if self._pending is not action:
                return False
            self._pending = None
        logger.debug("Pending gesture action withdrawn")
        return True
