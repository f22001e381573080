"""Shared fixtures."""

import pytest

from perch.security.audit import set_security_event_sink


@pytest.fixture(autouse=True)
def _reset_security_sink():
    yield
    set_security_event_sink(None)
