"""Recording ProcessEnvironment for trigger tests.

Nothing is subscribed at process level: handlers are collected and fired
explicitly by the test, exit codes are recorded instead of exiting.
"""

from process_supervisor.triggers import ErrorHandler, ProcessEnvironment, SignalHandler


class FakeProcessEnvironment(ProcessEnvironment):
    """ProcessEnvironment that records subscriptions and exit calls."""

    def __init__(self):
        self.signal_handlers: dict[str, list[SignalHandler]] = {}
        self.uncaught_handlers: list[ErrorHandler] = []
        self.unhandled_handlers: list[ErrorHandler] = []
        self.exit_codes: list[int] = []

    @property
    def subscribed_signals(self) -> list[str]:
        return [name for name, handlers in self.signal_handlers.items() for _ in handlers]

    def subscribe_signal(self, name: str, handler: SignalHandler):
        self.signal_handlers.setdefault(name, []).append(handler)

    def subscribe_uncaught(self, handler: ErrorHandler):
        self.uncaught_handlers.append(handler)

    def subscribe_unhandled(self, handler: ErrorHandler):
        self.unhandled_handlers.append(handler)

    def exit(self, code: int):
        self.exit_codes.append(code)

    async def fire_signal(self, name: str):
        """Deliver signal ``name`` to every subscribed handler and wait for them."""
        for handler in list(self.signal_handlers.get(name, [])):
            await handler(name)

    async def fire_uncaught(self, error: BaseException):
        for handler in list(self.uncaught_handlers):
            await handler(error)

    async def fire_unhandled(self, error: BaseException):
        for handler in list(self.unhandled_handlers):
            await handler(error)
