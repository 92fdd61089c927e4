import pytest

from conductor.db.memory import InMemoryRunStore
from tests.fakes import FakePracticeStore, make_practice


@pytest.fixture
def practice():
    return make_practice()


@pytest.fixture
def practices(practice):
    return FakePracticeStore(practice)


@pytest.fixture
def run_store():
    return InMemoryRunStore()
