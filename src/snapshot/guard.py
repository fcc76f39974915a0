"""Scoped exit guard: run a callback once however the scope ends."""

from __future__ import annotations

import atexit
import logging
import signal
import subprocess
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

GUARDED_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGINT", "SIGHUP") if hasattr(signal, name)
)


def child_exit_status(returncode: int) -> int:
    """Map a Popen return code to a shell-style exit status."""
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


class ExitGuard:
    """Context manager running ``callback`` exactly once.

    The callback runs when the ``with`` block ends (normally or through an
    exception), from ``atexit``, or on SIGTERM/SIGINT/SIGHUP. While a child
    process is attached, those signals are forwarded to the child instead so
    it can shut down and the scope ends when it exits. Signals arriving while
    the callback runs are recorded in ``deferred_signal`` and do not
    interrupt it.
    """

    def __init__(self, callback: Callable[[], Any], install_signals: bool = True):
        self.callback = callback
        self.install_signals = install_signals
        self.child: Optional[subprocess.Popen] = None
        self.child_returncode: Optional[int] = None
        self.received_signal: Optional[int] = None
        self.deferred_signal: Optional[int] = None
        self._done = False
        self._running = False
        self._previous: Dict[int, Any] = {}

    def attach(self, child: subprocess.Popen) -> None:
        self.child = child

    def detach(self) -> None:
        if self.child is not None:
            self.child_returncode = self.child.poll()
        self.child = None

    def run_once(self) -> None:
        if self._done:
            return
        self._done = True
        self._running = True
        try:
            self.callback()
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Exit callback failed")
        finally:
            self._running = False

    def exit_status(self, signum: int) -> int:
        """Status to exit with after ``signum``: the child's if it already ended."""
        if self.child_returncode is not None:
            return child_exit_status(self.child_returncode)
        return 128 + signum

    def _handle_signal(self, signum: int, frame: Any) -> None:  # pylint: disable=unused-argument
        self.received_signal = signum
        if self._running:
            logger.info("Signal %s received while the exit callback runs; deferring", signum)
            self.deferred_signal = signum
            return
        if self.child is not None and self.child.poll() is None:
            logger.debug("Forwarding signal %s to child %s", signum, self.child.pid)
            self.child.send_signal(signum)
            return
        if self.child is not None:
            self.detach()
        self.run_once()
        raise SystemExit(self.exit_status(signum))

    def __enter__(self) -> "ExitGuard":
        atexit.register(self.run_once)
        if self.install_signals:
            for signum in GUARDED_SIGNALS:
                try:
                    self._previous[signum] = signal.signal(signum, self._handle_signal)
                except ValueError:
                    # Not the main thread.
                    break
        return self

    def __exit__(self, *exc: Any) -> None:
        try:
            self.run_once()
        finally:
            for signum, handler in self._previous.items():
                signal.signal(signum, handler)
            self._previous.clear()
            atexit.unregister(self.run_once)
