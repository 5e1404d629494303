from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

AppStateListener = Callable[[str], None]

ACTIVE = "active"
INACTIVE = "inactive"
BACKGROUND = "background"

# The state each platform reports first when the app is leaving the foreground.
_LEAVING_STATE_BY_PLATFORM = {
    "ios": INACTIVE,
    "android": BACKGROUND,
}


def is_leaving_foreground(platform: str, state: str) -> bool:
    """Return True when `state` means the app is leaving the foreground."""

    expected = _LEAVING_STATE_BY_PLATFORM.get(platform.lower(), BACKGROUND)
    return state == expected


class AppLifecycle:
    """Foreground/background signal supplied by the host application."""

    def __init__(self) -> None:
        self._listeners: list[AppStateListener] = []
        self.state = ACTIVE

    def subscribe(self, listener: AppStateListener) -> Callable[[], None]:
        """Register a listener for app state changes; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, state: str) -> None:
        """Publish a new app state to every listener."""

        self.state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:  # noqa: BLE001
                logger.exception("App state listener failed for state %s", state)
