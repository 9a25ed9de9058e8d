"""Pytest configuration for process-supervisor tests."""

import pytest

from process_supervisor import ProcessSupervisor, SupervisorOptions
from tests.helpers.fake_environment import FakeProcessEnvironment


@pytest.fixture
def environment():
    """Recording process environment (no real signal handlers, no exit)."""
    return FakeProcessEnvironment()


@pytest.fixture
def supervisor(environment):
    """Supervisor with triggers routed to the recording environment."""
    return ProcessSupervisor(environment=environment)


@pytest.fixture
def make_supervisor(environment):
    """Factory for supervisors with custom options."""
    def factory(**options) -> ProcessSupervisor:
        return ProcessSupervisor(SupervisorOptions(**options), environment=environment)
    return factory
