"""Non-reentrant guard for operations on the shared BLE transport."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

from .exceptions import BusyError

_LOGGER = logging.getLogger(__name__)


class OperationGuard:
    """
    A single busy flag.

    A second request while the flag is held fails at once with BusyError;
    requests are never queued.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._label: Optional[str] = None

    @property
    def active(self) -> bool:
        """Check if the guard is held."""
        return self._label is not None

    @property
    def label(self) -> Optional[str]:
        """Get the label of the current holder."""
        return self._label

    def acquire(self, label: str) -> None:
        """Take the guard or raise BusyError."""
        if self._label is not None:
            _LOGGER.debug(
                "%s: Rejecting %s, %s already in progress", self._name, label, self._label
            )
            raise BusyError(self._label)
        self._label = label

    def release(self) -> None:
        """Release the guard. Safe to call when not held."""
        self._label = None

    @contextmanager
    def hold(self, label: str) -> Iterator[None]:
        """Hold the guard for the duration of the block."""
        self.acquire(label)
        try:
            yield
        finally:
            self.release()
