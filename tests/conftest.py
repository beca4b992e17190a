import pytest

from splitzone.app import create_app
from splitzone.models import Participant


@pytest.fixture
def roommates():
    """Three flatmates; Alice usually pays."""
    return [
        Participant("alice", "Alice"),
        Participant("bob", "Bob"),
        Participant("carol", "Carol"),
    ]


@pytest.fixture
def app():
    return create_app({"TESTING": True})


@pytest.fixture
def client(app):
    return app.test_client()
