"""Shared fixtures."""

from unittest.mock import MagicMock

import pytest

from fakes import FakeRandomGenerator, SessionReplayer


@pytest.fixture
def session():
    """Scripted metadata session."""
    return SessionReplayer()


@pytest.fixture
def random_generator():
    return FakeRandomGenerator()


@pytest.fixture
def platform():
    """Platform operations mock; nothing touches the real system."""
    return MagicMock()
