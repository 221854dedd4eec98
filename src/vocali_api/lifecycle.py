"""
Process lifecycle handling for the Vocali API.

``ShutdownCoordinator`` owns the process-wide hooks: termination signals,
uncaught exceptions in any thread, and exceptions nobody retrieved from an
asyncio task. Logging and process exit are injected so every transition
can be exercised without terminating the test process.

States::

    running ──signal──▶ draining   (exit 0)
    running ──fault───▶ stopped    (exit 1)
    running ──bad env─▶ stopped    (exit 1)

"Draining" does not wait for in-flight requests; the server has already
finished its own shutdown when the re-raised signal reaches us, and the
process exits right away. Restarting after a fault is left to the
process supervisor.
"""

from __future__ import annotations

import asyncio
import os
import signal
import sys
import threading
from enum import Enum
from types import FrameType, TracebackType
from typing import Any, Callable

import structlog

TERMINATION_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class ShutdownState(str, Enum):
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


def terminate(code: int) -> None:
    """Flush stdio and leave the process immediately with *code*."""
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass
    os._exit(code)


class ShutdownCoordinator:
    """Translate signals and unrecoverable faults into process exit.

    Args:
        logger: structlog-style logger; defaults to this module's logger.
        exit_hook: Called with the exit status. Defaults to ``terminate``.
    """

    def __init__(
        self,
        *,
        logger: Any = None,
        exit_hook: Callable[[int], Any] = terminate,
    ) -> None:
        self._logger = logger or structlog.get_logger(__name__)
        self._exit = exit_hook
        self._state = ShutdownState.RUNNING
        self._lock = threading.Lock()
        self._previous_signals: dict[int, Any] = {}
        self._previous_excepthook: Any = None
        self._previous_threading_excepthook: Any = None

    @property
    def state(self) -> ShutdownState:
        return self._state

    # ── hook registration ──

    def install(self) -> None:
        """Register signal handlers and interpreter-level exception hooks."""
        for sig in TERMINATION_SIGNALS:
            self._previous_signals[sig] = signal.signal(sig, self.handle_signal)
        self._previous_excepthook = sys.excepthook
        sys.excepthook = self.handle_uncaught
        self._previous_threading_excepthook = threading.excepthook
        threading.excepthook = self.handle_thread_exception

    def uninstall(self) -> None:
        """Restore whatever hooks were in place before ``install``."""
        for sig, previous in self._previous_signals.items():
            signal.signal(sig, previous)
        self._previous_signals.clear()
        if self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
            self._previous_excepthook = None
        if self._previous_threading_excepthook is not None:
            threading.excepthook = self._previous_threading_excepthook
            self._previous_threading_excepthook = None

    def watch_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Treat exceptions reported by *loop* as unrecoverable."""
        loop.set_exception_handler(self.handle_loop_exception)

    # ── transitions ──

    def handle_signal(self, signum: int, frame: FrameType | None = None) -> None:
        with self._lock:
            if self._state is not ShutdownState.RUNNING:
                return
            self._state = ShutdownState.DRAINING
        self._logger.info(
            "shutdown_signal_received",
            signal=signal.Signals(signum).name,
            message="shutting down gracefully",
        )
        self._exit(0)

    def handle_uncaught(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        """``sys.excepthook`` replacement."""
        self._fail("uncaught_exception", exc)

    def handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        """``threading.excepthook`` replacement."""
        if args.exc_value is None:
            return
        self._fail(
            "uncaught_exception",
            args.exc_value,
            thread=args.thread.name if args.thread else None,
        )

    def handle_loop_exception(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any],
    ) -> None:
        """asyncio exception handler; contexts without an exception are passed on."""
        exc = context.get("exception")
        if exc is None:
            loop.default_exception_handler(context)
            return
        self._fail("unobserved_async_exception", exc, detail=context.get("message"))

    def startup_failed(self, error: BaseException) -> None:
        """Abort before the server starts; no listener is ever opened."""
        self._fail("startup_failed", error)

    def _fail(self, event: str, exc: BaseException, **context: Any) -> None:
        with self._lock:
            if self._state is ShutdownState.STOPPED:
                return
            self._state = ShutdownState.STOPPED
        self._logger.critical(event, error=str(exc), exc_info=exc, **context)
        self._exit(1)
