"""
Signal channel for the capture event loop.

Real signal handlers do nothing here. CPython's C-level handler writes the
number of every delivered signal into the wakeup fd (see
`signal.set_wakeup_fd`), which is one end of a socketpair; the controller
selects on the other end and turns each byte into a state-machine event. All
reaction to signals therefore runs serially in the event loop, never inside a
handler.

SIGCHLD is always part of the channel so that child exits wake the loop without
polling.
"""

from __future__ import annotations

import selectors
import signal
import socket
from collections.abc import Iterable
from types import FrameType, TracebackType
from typing import Any


def _ignore(signum: int, frame: FrameType | None) -> None:
    return None


class SignalChannel:
    def __init__(self, signums: Iterable[int]) -> None:
        self.signums: tuple[signal.Signals, ...] = tuple(
            dict.fromkeys([*(signal.Signals(s) for s in signums), signal.SIGCHLD])
        )
        self._previous_handlers: dict[signal.Signals, Any] = {}
        self._previous_wakeup_fd: int | None = None
        self._rsock: socket.socket | None = None
        self._wsock: socket.socket | None = None
        self._selector: selectors.BaseSelector | None = None

    def __enter__(self) -> "SignalChannel":
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def open(self) -> None:
        """Install handlers; must run on the main thread."""
        self._rsock, self._wsock = socket.socketpair()
        self._rsock.setblocking(False)
        self._wsock.setblocking(False)
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._rsock, selectors.EVENT_READ)
        self._previous_wakeup_fd = signal.set_wakeup_fd(self._wsock.fileno(), warn_on_full_buffer=False)
        for signum in self.signums:
            self._previous_handlers[signum] = signal.signal(signum, _ignore)

    def close(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers.clear()
        if self._previous_wakeup_fd is not None:
            signal.set_wakeup_fd(self._previous_wakeup_fd)
            self._previous_wakeup_fd = None
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        for sock in (self._rsock, self._wsock):
            if sock is not None:
                sock.close()
        self._rsock = self._wsock = None

    def receive(self, timeout: float | None = None) -> list[signal.Signals]:
        """Block until at least one signal arrives (or timeout); return them in delivery order."""
        if self._selector is None or self._rsock is None:
            raise RuntimeError("SignalChannel is not open")
        if not self._selector.select(timeout):
            return []
        try:
            data = self._rsock.recv(4096)
        except BlockingIOError:
            return []
        return [signal.Signals(b) for b in data if b in self._known]

    @property
    def _known(self) -> set[int]:
        return {int(s) for s in self.signums}
