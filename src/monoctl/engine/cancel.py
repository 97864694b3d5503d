"""Cooperative cancellation token.

The pipeline polls the token between steps. A step that is already
running always finishes; writes already committed by rename stay.
"""

from __future__ import annotations

import threading


class CancelToken:
    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
