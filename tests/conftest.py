import logging
from collections.abc import Generator

import pytest

from sqlroute.utils.logging import set_correlation_id
from tests.fakes import FakeCallableCursor, FakeConnection


@pytest.fixture
def fake_connection() -> FakeConnection:
    """Connection whose cursors support the core of PEP 249 only."""
    return FakeConnection()


@pytest.fixture
def callable_connection() -> FakeConnection:
    """Connection whose cursors implement ``callproc``."""
    return FakeConnection(cursor_class=FakeCallableCursor)


@pytest.fixture(autouse=True)
def reset_correlation_id() -> Generator[None, None, None]:
    yield
    set_correlation_id(None)


@pytest.fixture
def statement_log(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    """Capture sqlroute DEBUG output."""
    caplog.set_level(logging.DEBUG, logger="sqlroute")
    return caplog
