"""Switch writability learning.

Output channels (`o*`) are assumed writable and input channels (`i*`)
read-only until a write attempt says otherwise. A successful write promotes a
channel; the cloud's "manual IO on sensors is not allowed" rejection demotes
it. Listeners are notified whenever the writable set changes so command
handlers can be added or removed without a restart.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping

from .classifier import channel_direction

_LOGGER = logging.getLogger(__name__)


def default_writable(io: str) -> bool:
    """Return the naming-convention default for a channel."""
    return channel_direction(io) == "o"


class WritabilityLearner:
    """Track which switch channels accept manual writes."""

    def __init__(
        self,
        channels: Iterable[str],
        *,
        overrides: Mapping[str, Any] | None = None,
    ) -> None:
        self._channels: list[str] = list(dict.fromkeys(channels))
        self._overrides: dict[str, bool] = {
            str(io): bool(v)
            for io, v in (overrides or {}).items()
            if str(io) in self._channels and isinstance(v, bool)
        }
        self._listeners: list[Callable[[], None]] = []

    @property
    def channels(self) -> list[str]:
        return list(self._channels)

    @property
    def overrides(self) -> dict[str, bool]:
        """Learned values only, suitable for persisting."""
        return dict(self._overrides)

    def is_writable(self, io: str) -> bool:
        if io in self._overrides:
            return self._overrides[io]
        return default_writable(io)

    def writable_channels(self) -> list[str]:
        return [io for io in self._channels if self.is_writable(io)]

    def record_write_success(self, io: str) -> bool:
        """Mark a channel writable. Returns True when this changed anything."""
        return self._set(io, True)

    def record_sensor_rejection(self, io: str) -> bool:
        """Mark a channel read-only. Returns True when this changed anything."""
        return self._set(io, False)

    def async_add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _set(self, io: str, writable: bool) -> bool:
        before = self.is_writable(io)
        self._overrides[io] = writable
        if io not in self._channels:
            self._channels.append(io)
        if before == writable:
            return False
        _LOGGER.info(
            "Channel %s is now %s", io, "writable" if writable else "read-only"
        )
        for listener in list(self._listeners):
            listener()
        return True
