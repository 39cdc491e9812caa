import os
import random

import pytest

# Set test environment before any imports
os.environ["SECRET_KEY"] = "test-secret"
os.environ["SOCKETIO_ASYNC_MODE"] = "threading"  # Use threading for tests (no gevent monkey-patching needed)


class ScriptedRandom:
    """Random source whose wheel draws are queued up by the test."""

    def __init__(self, *indexes):
        self.indexes = list(indexes)

    def randrange(self, n):
        if self.indexes:
            return self.indexes.pop(0)
        return random.randrange(n)

    def choice(self, seq):
        return random.choice(seq)


@pytest.fixture(autouse=True)
def reset_rooms():
    """Reset the room registry before each test."""
    from game import ROOMS

    ROOMS.clear()
    ROOMS.rng = random
    yield
    ROOMS.clear()
    ROOMS.rng = random


@pytest.fixture
def wheel_rng():
    """Install a scripted random source on the registry."""
    from game import ROOMS

    rng = ScriptedRandom()
    ROOMS.rng = rng
    return rng
