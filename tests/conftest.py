import pytest

from _testutil import FakeSession


@pytest.fixture
def session():
    return FakeSession()
