# core.py
# This file holds the rule engine for the 2048 game: tiles, the grid and move resolution.

from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple
import random

WIN_TILE = 2048
SPAWN_FOUR_PROBABILITY = 0.1


class DIRECTION(Enum):
    """Represents the possible move directions."""
    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3


class Position(NamedTuple):
    """A cell coordinate on the grid."""
    x: int
    y: int


# Vectors representing tile movement
VECTORS: Dict[DIRECTION, Position] = {
    DIRECTION.UP: Position(0, -1),
    DIRECTION.RIGHT: Position(1, 0),
    DIRECTION.DOWN: Position(0, 1),
    DIRECTION.LEFT: Position(-1, 0),
}


class CorruptStateError(ValueError):
    """Raised when a serialized grid cannot be turned back into a valid Grid."""


def is_tile_value(value: int) -> bool:
    """
    Checks that a value is a power of two no smaller than 2.
    Args:
        value (int): The candidate tile value.
    Returns:
        bool: True if the value can appear on a tile.
    """
    return isinstance(value, int) and not isinstance(value, bool) \
        and value >= 2 and (value & (value - 1)) == 0


def get_vector(direction: DIRECTION) -> Position:
    """
    Gets the unit vector for a direction.
    Args:
        direction (DIRECTION): The direction, or its integer value.
    Returns:
        Position: The (dx, dy) step.
    Raises:
        ValueError: If the direction is not one of the four known values.
    """
    return VECTORS[DIRECTION(direction)]


# --- Tile ---

class Tile:
    """One numbered piece on the board."""

    def __init__(self, position: Position, value: int):
        self.position = Position(*position)
        self.value = value
        self.previous_position: Optional[Position] = None
        self.merged_from: Optional[Tuple["Tile", "Tile"]] = None

    @property
    def x(self) -> int:
        return self.position.x

    @property
    def y(self) -> int:
        return self.position.y

    def save_position(self) -> None:
        self.previous_position = self.position

    def update_position(self, position: Position) -> None:
        self.position = Position(*position)

    def serialize(self) -> dict:
        return {"position": {"x": self.x, "y": self.y}, "value": self.value}

    def __repr__(self) -> str:
        return f"Tile({self.x}, {self.y}, value={self.value})"


class MoveResult(NamedTuple):
    """Outcome of resolving one direction on a grid."""
    grid: "Grid"
    score: int
    moved: bool
    over: bool
    won: bool


# --- Grid ---

class Grid:
    """
    A size x size board of optional tiles, indexed as cells[x][y].

    The grid can be rebuilt from the serialized cell array produced by
    serialize(), which is the same layout stored in game snapshots.
    """

    def __init__(self, size: int, previous_state: Optional[List[List[Optional[dict]]]] = None):
        if not isinstance(size, int) or size <= 0:
            raise ValueError("Grid size must be a positive integer.")
        self.size = size
        self.cells = self._from_state(previous_state) if previous_state is not None else self._empty()

    @classmethod
    def from_state(cls, state: dict) -> "Grid":
        """
        Rebuilds a grid from the output of serialize().
        Args:
            state (dict): A mapping with "size" and "cells".
        Returns:
            Grid: A grid holding fresh Tile objects.
        Raises:
            CorruptStateError: If the mapping is malformed.
        """
        try:
            size = state["size"]
            cells = state["cells"]
        except (KeyError, TypeError) as e:
            raise CorruptStateError(f"Grid state is missing a field: {e}") from e
        if not isinstance(size, int) or size <= 0:
            raise CorruptStateError(f"Invalid grid size: {size!r}")
        return cls(size, cells)

    @classmethod
    def from_rows(cls, rows: List[List[int]]) -> "Grid":
        """
        Builds a grid from rows of values, top row first, 0 for empty cells.
        Args:
            rows (List[List[int]]): A square matrix of tile values.
        Returns:
            Grid: The matching grid.
        Raises:
            CorruptStateError: If the matrix is not square or holds an invalid value.
        """
        size = len(rows)
        if size == 0 or not all(len(row) == size for row in rows):
            raise CorruptStateError("Board must be a non-empty square matrix.")
        grid = cls(size)
        for y, row in enumerate(rows):
            for x, value in enumerate(row):
                if value == 0:
                    continue
                if not is_tile_value(value):
                    raise CorruptStateError(f"Invalid tile value {value!r} at ({x}, {y}).")
                grid.insert_tile(Tile(Position(x, y), value))
        return grid

    def _empty(self) -> List[List[Optional[Tile]]]:
        return [[None] * self.size for _ in range(self.size)]

    def _from_state(self, state: List[List[Optional[dict]]]) -> List[List[Optional[Tile]]]:
        if not isinstance(state, list) or len(state) != self.size:
            raise CorruptStateError(f"Expected {self.size} columns in grid state.")

        cells = self._empty()
        for x, column in enumerate(state):
            if not isinstance(column, list) or len(column) != self.size:
                raise CorruptStateError(f"Column {x} does not hold {self.size} cells.")
            for y, entry in enumerate(column):
                if entry is None:
                    continue
                try:
                    position = Position(int(entry["position"]["x"]), int(entry["position"]["y"]))
                    value = entry["value"]
                except (KeyError, TypeError, ValueError) as e:
                    raise CorruptStateError(f"Malformed tile at ({x}, {y}): {entry!r}") from e
                if position != (x, y):
                    raise CorruptStateError(f"Tile stored at ({x}, {y}) claims position {tuple(position)}.")
                if not is_tile_value(value):
                    raise CorruptStateError(f"Tile at ({x}, {y}) has invalid value {value!r}.")
                cells[x][y] = Tile(position, value)
        return cells

    def copy(self) -> "Grid":
        """Returns a deep copy; no Tile object is shared with the original."""
        clone = Grid(self.size)
        for x, y, tile in self.each_cell():
            if tile:
                clone.cells[x][y] = Tile(tile.position, tile.value)
        return clone

    # --- Cell queries ---

    def each_cell(self) -> Iterator[Tuple[int, int, Optional[Tile]]]:
        for x in range(self.size):
            for y in range(self.size):
                yield x, y, self.cells[x][y]

    def available_cells(self) -> List[Position]:
        return [Position(x, y) for x, y, tile in self.each_cell() if tile is None]

    def cells_available(self) -> bool:
        return bool(self.available_cells())

    def within_bounds(self, position: Position) -> bool:
        return 0 <= position[0] < self.size and 0 <= position[1] < self.size

    def cell_content(self, cell: Position) -> Optional[Tile]:
        if self.within_bounds(cell):
            return self.cells[cell[0]][cell[1]]
        return None

    def cell_occupied(self, cell: Position) -> bool:
        return self.cell_content(cell) is not None

    def cell_available(self, cell: Position) -> bool:
        return not self.cell_occupied(cell)

    def count_tiles(self) -> int:
        return sum(1 for _, _, tile in self.each_cell() if tile)

    def max_tile(self) -> int:
        return max((tile.value for _, _, tile in self.each_cell() if tile), default=0)

    # --- Tile placement ---

    def insert_tile(self, tile: Tile) -> None:
        self.cells[tile.x][tile.y] = tile

    def remove_tile(self, tile: Tile) -> None:
        self.cells[tile.x][tile.y] = None

    def move_tile(self, tile: Tile, cell: Position) -> None:
        self.cells[tile.x][tile.y] = None
        self.cells[cell[0]][cell[1]] = tile
        tile.update_position(cell)

    def random_available_cell(self, rng: Optional[random.Random] = None) -> Optional[Position]:
        cells = self.available_cells()
        if not cells:
            return None
        return (rng or random).choice(cells)

    def add_random_tile(self, rng: Optional[random.Random] = None) -> Optional[Tile]:
        """
        Adds a new tile (90% chance of 2, 10% chance of 4) to a random empty cell.
        Args:
            rng (random.Random, optional): Source of randomness. Defaults to the random module.
        Returns:
            Optional[Tile]: The inserted tile, or None if the grid is full.
        """
        rng = rng or random
        cell = self.random_available_cell(rng)
        if cell is None:
            return None
        value = 4 if rng.random() < SPAWN_FOUR_PROBABILITY else 2
        tile = Tile(cell, value)
        self.insert_tile(tile)
        return tile

    def prepare_tiles(self) -> None:
        """Saves all tile positions and removes merger info."""
        for _, _, tile in self.each_cell():
            if tile:
                tile.merged_from = None
                tile.save_position()

    # --- Move resolution ---

    def build_traversals(self, vector: Position) -> Tuple[List[int], List[int]]:
        """
        Builds the per-axis visiting order so cells nearest the target edge come first.
        Args:
            vector (Position): The movement vector.
        Returns:
            Tuple[List[int], List[int]]: The x order and the y order.
        """
        xs = list(range(self.size))
        ys = list(range(self.size))
        if vector.x == 1:
            xs.reverse()
        if vector.y == 1:
            ys.reverse()
        return xs, ys

    def find_farthest_position(self, cell: Position, vector: Position) -> Tuple[Position, Position]:
        """
        Walks from a cell along a vector until an obstacle or the wall is reached.
        Args:
            cell (Position): The starting cell.
            vector (Position): The movement vector.
        Returns:
            Tuple[Position, Position]: The farthest empty cell and the first blocked cell after it.
        """
        previous = cell
        cell = Position(previous.x + vector.x, previous.y + vector.y)
        while self.within_bounds(cell) and self.cell_available(cell):
            previous = cell
            cell = Position(previous.x + vector.x, previous.y + vector.y)
        return previous, cell

    def move(self, direction: DIRECTION, rng: Optional[random.Random] = None,
             win_tile: int = WIN_TILE) -> MoveResult:
        """
        Resolves one move on a copy of this grid.

        Tiles slide toward the chosen edge, equal neighbours merge once per turn,
        and if anything moved a random tile is spawned. This grid is left untouched.

        Args:
            direction (DIRECTION): The direction to move, or its integer value.
            rng (random.Random, optional): Source of randomness for the spawned tile.
            win_tile (int): The tile value that flags a win. Default is 2048.
        Returns:
            MoveResult: The new grid, the score gained, whether anything moved,
                        whether the new grid has no moves left, and whether the win tile was made.
        Raises:
            ValueError: If an invalid direction is specified.
        """
        vector = get_vector(direction)
        xs, ys = self.build_traversals(vector)
        grid = self.copy()
        grid.prepare_tiles()

        score = 0
        moved = False
        won = False

        for x in xs:
            for y in ys:
                cell = Position(x, y)
                tile = grid.cell_content(cell)
                if tile is None:
                    continue

                farthest, following = grid.find_farthest_position(cell, vector)
                other = grid.cell_content(following)

                if other is not None and other.value == tile.value and other.merged_from is None:
                    merged = Tile(following, tile.value * 2)
                    merged.merged_from = (tile, other)

                    grid.insert_tile(merged)
                    grid.remove_tile(tile)

                    # Converge the two tiles' positions
                    tile.update_position(following)

                    score += merged.value
                    if merged.value == win_tile:
                        won = True
                else:
                    grid.move_tile(tile, farthest)

                if tile.position != cell:
                    moved = True

        if moved:
            grid.add_random_tile(rng)

        return MoveResult(grid=grid, score=score, moved=moved, over=not grid.moves_available(), won=won)

    # --- Game state checks ---

    def tile_matches_available(self) -> bool:
        """Checks for two orthogonally adjacent tiles of equal value."""
        for x, y, tile in self.each_cell():
            if tile is None:
                continue
            for vector in VECTORS.values():
                other = self.cell_content(Position(x + vector.x, y + vector.y))
                if other is not None and other.value == tile.value:
                    return True
        return False

    def moves_available(self) -> bool:
        return self.cells_available() or self.tile_matches_available()

    def serialize(self) -> dict:
        return {
            "size": self.size,
            "cells": [[tile.serialize() if tile else None for tile in column] for column in self.cells],
        }

    def rows(self) -> List[List[int]]:
        """
        Gets the board as rows of values, top row first, 0 for empty cells.
        Returns:
            List[List[int]]: size lists of size values.
        """
        return [[self.cells[x][y].value if self.cells[x][y] else 0 for x in range(self.size)]
                for y in range(self.size)]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self.serialize() == other.serialize()

    def __repr__(self) -> str:
        return f"Grid(size={self.size}, rows={self.rows()})"
