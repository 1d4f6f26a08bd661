import pytest

from card_context import ContextManager
from fakes import FakeResourceManager


@pytest.fixture
def rm():
    return FakeResourceManager()


@pytest.fixture
def classic_rm():
    return FakeResourceManager(mode="classic", protocol=1)


@pytest.fixture
def ctx(rm):
    return ContextManager(rm).establish()
