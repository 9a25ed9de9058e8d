"""Process-level capabilities used by the termination triggers.

The supervisor never touches signal handlers, excepthooks or ``sys.exit``
directly. It goes through a ProcessEnvironment, so tests can substitute one
that only records what it was asked to do.
"""

import asyncio
import logging
import signal
import sys
from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import Any


SignalHandler = Callable[[str], Coroutine[Any, Any, None]]
ErrorHandler = Callable[[BaseException], Coroutine[Any, Any, None]]


class ProcessEnvironment(ABC):
    """Access to process-wide termination events and process exit."""

    @abstractmethod
    def subscribe_signal(self, name: str, handler: SignalHandler):
        """Run ``handler(name)`` whenever signal ``name`` (e.g. "SIGTERM") is received."""
        pass

    @abstractmethod
    def subscribe_uncaught(self, handler: ErrorHandler):
        """Run ``handler(error)`` for errors nobody caught."""
        pass

    @abstractmethod
    def subscribe_unhandled(self, handler: ErrorHandler):
        """Run ``handler(error)`` for failed tasks whose error was never retrieved."""
        pass

    @abstractmethod
    def exit(self, code: int):
        """Terminate the current process with ``code``."""
        pass


class AsyncioProcessEnvironment(ProcessEnvironment):
    """ProcessEnvironment backed by the running asyncio loop.

    - Signals: ``loop.add_signal_handler`` (``signal.signal`` when no loop
      is running yet or the platform lacks loop signal support)
    - Uncaught errors: ``sys.excepthook`` plus exceptions in loop callbacks
    - Unhandled task failures: loop exception handler contexts that carry
      a future/task
    - Exit: ``sys.exit``, which unwinds ``asyncio.run`` cleanly
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self.logger = logging.getLogger("trg")
        self._loop = loop
        self._uncaught: list[ErrorHandler] = []
        self._unhandled: list[ErrorHandler] = []
        self._signals: list[tuple[int, bool]] = []  # (signum, via loop)
        self._tasks: set[asyncio.Task] = set()
        self._previous_excepthook = None
        self._handler_loop: asyncio.AbstractEventLoop | None = None
        self._previous_loop_handler = None

    def _get_loop(self) -> asyncio.AbstractEventLoop | None:
        if self._loop is not None and not self._loop.is_closed():
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _dispatch(self, coro: Coroutine[Any, Any, None]):
        """Schedule handler coroutine on the loop, or run it to completion if there is none."""
        loop = self._get_loop()
        if loop is None:
            asyncio.run(coro)
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_python_signal(self, name: str, handler: SignalHandler):
        """Handler installed with signal.signal; runs between bytecodes of the main thread."""
        loop = self._get_loop()
        if loop is None:
            asyncio.run(handler(name))
            return
        # Plain call_soon would not wake a loop blocked in select()
        loop.call_soon_threadsafe(lambda: self._dispatch(handler(name)))

    def subscribe_signal(self, name: str, handler: SignalHandler):
        signum = getattr(signal, name, None)
        if not isinstance(signum, signal.Signals):
            raise ValueError(f"Unknown signal: {name}")

        loop = self._get_loop()
        if loop is not None:
            try:
                loop.add_signal_handler(signum, lambda: self._dispatch(handler(name)))
                self._signals.append((signum, True))
                self.logger.debug(f"Subscribed to {name} via event loop")
                return
            except NotImplementedError:
                pass

        signal.signal(signum, lambda _signum, _frame: self._on_python_signal(name, handler))
        self._signals.append((signum, False))
        self.logger.debug(f"Subscribed to {name} via signal.signal")

    def subscribe_uncaught(self, handler: ErrorHandler):
        self._uncaught.append(handler)
        self._install_excepthook()
        self._install_loop_handler()

    def subscribe_unhandled(self, handler: ErrorHandler):
        self._unhandled.append(handler)
        self._install_loop_handler()

    def exit(self, code: int):
        self.logger.debug(f"Exiting with code {code}")
        sys.exit(code)

    def restore(self):
        """Remove every installed hook and handler."""
        for signum, via_loop in self._signals:
            if via_loop:
                loop = self._get_loop()
                if loop is not None:
                    loop.remove_signal_handler(signum)
            else:
                signal.signal(signum, signal.SIG_DFL)
        self._signals.clear()

        if self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
            self._previous_excepthook = None

        if self._handler_loop is not None and not self._handler_loop.is_closed():
            self._handler_loop.set_exception_handler(self._previous_loop_handler)
        self._handler_loop = None
        self._previous_loop_handler = None

        self._uncaught.clear()
        self._unhandled.clear()

    def _install_excepthook(self):
        if self._previous_excepthook is not None:
            return
        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook

    def _excepthook(self, exc_type, exc, tb):
        if not self._uncaught or issubclass(exc_type, KeyboardInterrupt):
            self._previous_excepthook(exc_type, exc, tb)
            return
        for handler in list(self._uncaught):
            self._dispatch(handler(exc))

    def _install_loop_handler(self):
        if self._handler_loop is not None:
            return
        loop = self._get_loop()
        if loop is None:
            self.logger.debug("No event loop yet, task failures will not be tracked")
            return
        self._handler_loop = loop
        self._previous_loop_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._loop_exception_handler)

    def _loop_exception_handler(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]):
        error = context.get("exception")
        if error is None:
            handlers = []
        elif "future" in context or "task" in context:
            handlers = self._unhandled
        else:
            handlers = self._uncaught

        if not handlers:
            if self._previous_loop_handler is not None:
                self._previous_loop_handler(loop, context)
            else:
                loop.default_exception_handler(context)
            return

        for handler in list(handlers):
            self._dispatch(handler(error))
