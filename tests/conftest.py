"""Shared fixtures."""
import random

import pytest

from core import Grid
from game import Actuator


class FixedRandom(random.Random):
    """Random source that always spawns at the same index with the same roll."""

    def __init__(self, index=-1, roll=0.5):
        super().__init__(0)
        self.index = index
        self.roll = roll

    def choice(self, seq):
        return seq[self.index]

    def random(self):
        return self.roll


class RecordingActuator(Actuator):
    """Keeps every render call for inspection."""

    def __init__(self):
        self.calls = []
        self.continued = 0

    def actuate(self, grid, metadata):
        self.calls.append((grid.serialize(), dict(metadata)))

    def continue_game(self):
        self.continued += 1


@pytest.fixture
def fixed_rng():
    """Spawns a 2 in the last free cell (highest x, then highest y)."""
    return FixedRandom()


@pytest.fixture
def actuator():
    return RecordingActuator()


@pytest.fixture
def make_state():
    """Builds a game snapshot from rows of values, top row first."""
    def _make_state(rows, score=0, over=False, won=False, keep_playing=False):
        return {
            "grid": Grid.from_rows(rows).serialize(),
            "score": score,
            "over": over,
            "won": won,
            "keepPlaying": keep_playing,
        }
    return _make_state
