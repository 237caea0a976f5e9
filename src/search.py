# search.py
# Look-ahead move selection for the 2048 game and a timer-driven auto player.

import logging
import random
import threading
from typing import List, Optional, Tuple

from core import DIRECTION, WIN_TILE, Grid
from game import Game

logger = logging.getLogger(__name__)


def simulate(state: dict, direction: DIRECTION, rng: Optional[random.Random] = None,
             win_tile: int = WIN_TILE) -> Tuple[dict, bool]:
    """
    Plays one move on a copy of a serialized game state.
    Args:
        state (dict): A snapshot as produced by Game.serialize().
        direction (DIRECTION): The direction to move.
        rng (random.Random, optional): Source of randomness for the spawned tile.
        win_tile (int): The tile value that flags a win.
    Returns:
        Tuple[dict, bool]: The resulting snapshot and whether the move changed the board.
    Raises:
        CorruptStateError: If the snapshot's grid is malformed.
    """
    grid = Grid.from_state(state["grid"])
    result = grid.move(direction, rng, win_tile)
    next_state = dict(state)
    next_state.update(
        grid=result.grid.serialize(),
        score=state["score"] + result.score,
        over=state.get("over", False) or result.over,
        won=state.get("won", False) or result.won,
    )
    return next_state, result.moved


def evaluate(state: dict, depth: int, rng: Optional[random.Random] = None,
             win_tile: int = WIN_TILE) -> int:
    """
    Scores a state by the best score reachable within depth further moves.

    A child move that ends the game scores 0; a child move that changes
    nothing scores the unchanged score.
    """
    if depth <= 0:
        return state["score"]

    scores = []
    for direction in DIRECTION:
        child, moved = simulate(state, direction, rng, win_tile)
        if not moved:
            scores.append(child["score"])
        elif child["over"]:
            scores.append(0)
        else:
            scores.append(evaluate(child, depth - 1, rng, win_tile))
    return max(scores)


def score_moves(state: dict, max_depth: int, rng: Optional[random.Random] = None,
                win_tile: int = WIN_TILE) -> List[Tuple[DIRECTION, bool, int]]:
    """
    Evaluates each direction from a state.
    Args:
        state (dict): A snapshot as produced by Game.serialize(). It is not modified.
        max_depth (int): Additional moves to look ahead past the first one.
        rng (random.Random, optional): Source of randomness for simulated spawns.
        win_tile (int): The tile value that flags a win.
    Returns:
        List[Tuple[DIRECTION, bool, int]]: (direction, moved, value) in direction order.
    """
    rng = rng or random.Random()
    results = []
    for direction in DIRECTION:
        child, moved = simulate(state, direction, rng, win_tile)
        if not moved:
            value = child["score"]
        elif child["over"]:
            value = 0
        else:
            value = evaluate(child, max_depth, rng, win_tile)
        results.append((direction, moved, value))
    return results


def select_move(state: dict, max_depth: int, rng: Optional[random.Random] = None,
                win_tile: int = WIN_TILE) -> DIRECTION:
    """
    Picks the direction with the best look-ahead score.

    Directions that change the board always win over directions that don't.
    Ties go to the lowest direction value (up, right, down, left). A move that
    ends the game scores 0 at every depth, including max_depth 0.

    Args:
        state (dict): A snapshot as produced by Game.serialize(). It is not modified.
        max_depth (int): Additional moves to look ahead; 0 or less compares immediate scores only.
        rng (random.Random, optional): Source of randomness for simulated spawns.
        win_tile (int): The tile value that flags a win.
    Returns:
        DIRECTION: The chosen direction.
    """
    scored = score_moves(state, max_depth, rng, win_tile)
    candidates = [entry for entry in scored if entry[1]] or scored

    best_direction, _, best_value = candidates[0]
    for direction, _, value in candidates[1:]:
        if value > best_value:
            best_direction, best_value = direction, value

    logger.debug("Search depth %d picked %s (value %d) from %s",
                 max_depth, best_direction.name, best_value,
                 [(d.name, moved, value) for d, moved, value in scored])
    return best_direction


# --- Auto play ---

class AutoPlayHandle:
    """Returned by AutoPlayer.start(); cancel() stops further moves."""

    def __init__(self, player: "AutoPlayer"):
        self._player = player
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()
        self._player._cancel_timer(self)


class AutoPlayer:
    """
    Plays a game by repeatedly asking select_move for the next direction.

    Each tick runs one full search and one Game.move, or nothing. Ticks hold
    `lock` while they run; callers moving the same game by hand should take
    the same lock so the two never interleave.
    """

    def __init__(self, game: Game, depth: int = 3, interval: float = 0.25,
                 rng: Optional[random.Random] = None):
        self.game = game
        self.depth = depth
        self.interval = interval
        self.rng = rng or random.Random()
        self.lock = threading.Lock()
        self._handle: Optional[AutoPlayHandle] = None
        self._timer: Optional[threading.Timer] = None
        self._timer_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    def step(self) -> Optional[DIRECTION]:
        """
        Plays a single searched move.
        Returns:
            Optional[DIRECTION]: The direction played, or None if the game is
                                 terminated, no direction changed the board,
                                 or another move is in flight.
        """
        if not self.lock.acquire(blocking=False):
            return None
        try:
            if self.game.is_game_terminated():
                return None
            direction = select_move(self.game.serialize(), self.depth, self.rng, self.game.win_tile)
            return direction if self.game.move(direction) else None
        finally:
            self.lock.release()

    def start(self) -> AutoPlayHandle:
        """Starts playing every `interval` seconds, cancelling any earlier run."""
        self.stop()
        handle = AutoPlayHandle(self)
        self._handle = handle
        logger.info("Auto play started (depth %d, every %.2fs)", self.depth, self.interval)
        self._schedule(handle)
        return handle

    def stop(self) -> None:
        if self._handle is not None and not self._handle.cancelled:
            self._handle.cancel()
            logger.info("Auto play stopped")

    def toggle(self) -> bool:
        """Starts or stops auto play. Returns True if it is now running."""
        if self.running:
            self.stop()
        else:
            self.start()
        return self.running

    def _schedule(self, handle: AutoPlayHandle) -> None:
        with self._timer_lock:
            if handle.cancelled:
                return
            self._timer = threading.Timer(self.interval, self._tick, args=(handle,))
            self._timer.daemon = True
            self._timer.start()

    def _tick(self, handle: AutoPlayHandle) -> None:
        if handle.cancelled:
            return
        self.step()
        if self.game.is_game_terminated():
            handle.cancel()
            logger.info("Auto play finished with score %d", self.game.score)
            return
        self._schedule(handle)

    def _cancel_timer(self, handle: AutoPlayHandle) -> None:
        with self._timer_lock:
            if self._handle is handle and self._timer is not None:
                self._timer.cancel()
                self._timer = None
