# game.py
# Turn controller for the 2048 game, plus the storage and render collaborators it talks to.

import json
import logging
import os
import random
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError

from core import DIRECTION, WIN_TILE, CorruptStateError, Grid
from schemas import GameStateModel

logger = logging.getLogger(__name__)

# --- Storage ---

class MemoryStorage:
    """Keeps the best score and the game snapshot in a dict."""

    BEST_SCORE_KEY = "bestScore"
    GAME_STATE_KEY = "gameState"

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(data or {})

    def _get(self, key: str) -> Any:
        return self._data.get(key)

    def _set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def _remove(self, key: str) -> None:
        self._data.pop(key, None)

    def get_best_score(self) -> int:
        return self._get(self.BEST_SCORE_KEY) or 0

    def set_best_score(self, score: int) -> None:
        self._set(self.BEST_SCORE_KEY, score)

    def get_game_state(self) -> Optional[dict]:
        return self._get(self.GAME_STATE_KEY)

    def set_game_state(self, state: dict) -> None:
        self._set(self.GAME_STATE_KEY, state)

    def clear_game_state(self) -> None:
        self._remove(self.GAME_STATE_KEY)


class JsonFileStorage(MemoryStorage):
    """MemoryStorage that writes through to a JSON file after every change."""

    def __init__(self, path: Union[str, os.PathLike]):
        self.path = path
        super().__init__(self._load())

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring state file %s: top level is not an object", self.path)
            return {}
        return data

    def _flush(self) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f)

    def _set(self, key: str, value: Any) -> None:
        super()._set(key, value)
        self._flush()

    def _remove(self, key: str) -> None:
        super()._remove(key)
        self._flush()


# --- Render ---

class Actuator:
    """Render collaborator. The base class draws nothing."""

    def actuate(self, grid: Grid, metadata: Dict[str, Any]) -> None:
        pass

    def continue_game(self) -> None:
        pass


# --- Game ---

class Game:
    """
    Owns one grid and the score/won/over/keep_playing flags.

    Every accepted move is persisted through the storage collaborator and
    reported to the actuator. Moves are ignored once the game is terminated.
    """

    def __init__(self, size: int = 4, storage: Optional[MemoryStorage] = None,
                 actuator: Optional[Actuator] = None, rng: Optional[random.Random] = None,
                 start_tiles: int = 2, win_tile: int = WIN_TILE):
        self.size = size
        self.storage = storage if storage is not None else MemoryStorage()
        self.actuator = actuator if actuator is not None else Actuator()
        self.rng = rng or random.Random()
        self.start_tiles = start_tiles
        self.win_tile = win_tile

        self.grid: Grid
        self.score = 0
        self.over = False
        self.won = False
        self.keep_playing = False

        self.setup()

    def restart(self) -> None:
        self.storage.clear_game_state()
        self.actuator.continue_game()
        self.setup()

    def continue_playing(self) -> None:
        """Keep playing after winning (allows going over the win tile)."""
        self.keep_playing = True
        self.actuator.continue_game()

    def is_game_terminated(self) -> bool:
        """True if the game is lost, or has been won and the player hasn't kept playing."""
        return self.over or (self.won and not self.keep_playing)

    def setup(self) -> None:
        previous_state = self._load_previous_state()

        if previous_state is not None:
            self.grid, snapshot = previous_state
            self.score = snapshot.score
            # A stuck board saved as still in play is over
            self.over = snapshot.over or not self.grid.moves_available()
            self.won = snapshot.won
            self.keep_playing = snapshot.keep_playing
        else:
            self.grid = Grid(self.size)
            self.score = 0
            self.over = False
            self.won = False
            self.keep_playing = False
            self.add_start_tiles()

        self.actuate()

    def _load_previous_state(self) -> Optional[Tuple[Grid, GameStateModel]]:
        state = self.storage.get_game_state()
        if not state:
            return None
        try:
            snapshot = GameStateModel.model_validate(state)
            if snapshot.grid.size != self.size:
                raise CorruptStateError(f"Stored grid size {snapshot.grid.size} does not match {self.size}.")
            grid = Grid.from_state(snapshot.grid.model_dump())
        except (ValidationError, CorruptStateError) as e:
            logger.warning("Discarding corrupt persisted game state: %s", e)
            self.storage.clear_game_state()
            return None
        return grid, snapshot

    def add_start_tiles(self) -> None:
        for _ in range(self.start_tiles):
            self.grid.add_random_tile(self.rng)

    def metadata(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "over": self.over,
            "won": self.won,
            "bestScore": self.storage.get_best_score(),
            "terminated": self.is_game_terminated(),
        }

    def actuate(self) -> None:
        """Updates the best score, persists or clears the snapshot and renders."""
        if self.storage.get_best_score() < self.score:
            self.storage.set_best_score(self.score)

        # Clear the state when the game is over (game over only, not win)
        if self.over:
            self.storage.clear_game_state()
        else:
            self.storage.set_game_state(self.serialize())

        self.actuator.actuate(self.grid, self.metadata())

    def serialize(self) -> dict:
        return {
            "grid": self.grid.serialize(),
            "score": self.score,
            "over": self.over,
            "won": self.won,
            "keepPlaying": self.keep_playing,
        }

    def move(self, direction: Union[DIRECTION, int]) -> bool:
        """
        Plays one move.
        Args:
            direction (DIRECTION): The direction, or its integer value (0 up, 1 right, 2 down, 3 left).
        Returns:
            bool: True if the move changed the board, False if it was ignored or had no effect.
        Raises:
            ValueError: If an invalid direction is specified.
        """
        direction = DIRECTION(direction)
        if self.is_game_terminated():
            return False

        result = self.grid.move(direction, self.rng, self.win_tile)
        if not result.moved:
            if result.over:
                self.over = True
                logger.info("Game over with score %d", self.score)
                self.actuate()
            return False

        self.grid = result.grid
        self.score += result.score

        if result.won and not self.won:
            self.won = True
            logger.info("Reached %d with score %d", self.win_tile, self.score)
        if result.over:
            self.over = True
            logger.info("Game over with score %d", self.score)

        self.actuate()
        return True
