"""Tests for the grid rule engine."""
import random

import pytest

from core import DIRECTION, CorruptStateError, Grid, Position, Tile, get_vector, is_tile_value

EMPTY_ROW = [0, 0, 0, 0]

CHECKERBOARD = [
    [2, 4, 2, 4],
    [4, 2, 4, 2],
    [2, 4, 2, 4],
    [4, 2, 4, 2],
]


def single_row(row):
    return Grid.from_rows([row, EMPTY_ROW, EMPTY_ROW, EMPTY_ROW])


class TestMergeRules:
    """Sliding and merging along a single line."""

    def test_four_equal_tiles_merge_into_two(self, fixed_rng):
        result = single_row([2, 2, 2, 2]).move(DIRECTION.LEFT, fixed_rng)

        assert result.moved is True
        assert result.score == 8
        assert result.grid.rows()[0] == [4, 4, 0, 0]
        # The spawned tile lands in the last free cell
        assert result.grid.rows()[3][3] == 2
        assert result.grid.count_tiles() == 3

    def test_tiles_at_both_ends_merge_right(self, fixed_rng):
        result = single_row([2, 0, 0, 2]).move(DIRECTION.RIGHT, fixed_rng)

        assert result.moved is True
        assert result.score == 4
        assert result.grid.rows()[0] == [0, 0, 0, 4]

    def test_merged_tile_does_not_merge_again(self, fixed_rng):
        result = single_row([2, 2, 4, 0]).move(DIRECTION.LEFT, fixed_rng)

        assert result.grid.rows()[0] == [4, 4, 0, 0]
        assert result.score == 4

    def test_merge_nearest_the_wall_first(self, fixed_rng):
        result = single_row([0, 2, 2, 2]).move(DIRECTION.RIGHT, fixed_rng)

        assert result.grid.rows()[0][1:] == [0, 2, 4]
        assert result.score == 4

    def test_vertical_moves(self, fixed_rng):
        grid = Grid.from_rows([
            [2, 0, 0, 0],
            [0, 0, 0, 0],
            [2, 0, 0, 0],
            [4, 0, 0, 0],
        ])

        down = grid.move(DIRECTION.DOWN, fixed_rng)
        assert [row[0] for row in down.grid.rows()] == [0, 0, 4, 4]
        assert down.score == 4

        up = grid.move(DIRECTION.UP, fixed_rng)
        assert [row[0] for row in up.grid.rows()] == [4, 4, 0, 0]
        assert up.score == 4

    def test_reaching_win_tile_sets_won(self, fixed_rng):
        result = single_row([1024, 1024, 0, 0]).move(DIRECTION.LEFT, fixed_rng)

        assert result.won is True
        assert result.score == 2048

    def test_custom_win_tile(self, fixed_rng):
        result = single_row([16, 16, 0, 0]).move(DIRECTION.LEFT, fixed_rng, win_tile=32)

        assert result.won is True

    def test_merged_tile_remembers_sources(self, fixed_rng):
        result = single_row([8, 8, 0, 0]).move(DIRECTION.LEFT, fixed_rng)
        merged = result.grid.cell_content(Position(0, 0))

        assert merged.value == 16
        assert [tile.value for tile in merged.merged_from] == [8, 8]


class TestNoOpMoves:
    """Moves that cannot change the board."""

    @pytest.mark.parametrize("direction", list(DIRECTION))
    def test_empty_grid_never_moves(self, direction):
        grid = Grid(4)
        result = grid.move(direction, random.Random(1))

        assert result.moved is False
        assert result.score == 0
        assert result.grid == grid
        assert result.grid.count_tiles() == 0

    def test_packed_row_moving_into_wall(self):
        grid = single_row([2, 4, 8, 16])
        result = grid.move(DIRECTION.LEFT, random.Random(1))

        assert result.moved is False
        assert result.grid == grid

    def test_repeating_a_move_on_a_full_board_is_noop(self, fixed_rng):
        rows = [list(row) for row in CHECKERBOARD]
        rows[0][0] = 0
        first = Grid.from_rows(rows).move(DIRECTION.LEFT, fixed_rng)

        assert first.moved is True
        assert first.grid.cells_available() is False

        second = first.grid.move(DIRECTION.LEFT, fixed_rng)
        assert second.moved is False
        assert second.score == 0
        assert second.grid == first.grid

    def test_move_leaves_original_grid_untouched(self, fixed_rng):
        grid = single_row([2, 2, 4, 4])
        before = grid.serialize()

        grid.move(DIRECTION.LEFT, fixed_rng)

        assert grid.serialize() == before


class TestScoreAccounting:
    """Score and tile totals over many random turns."""

    def test_score_equals_sum_of_merged_tiles(self):
        rng = random.Random(2048)
        grid = Grid(4)
        grid.add_random_tile(rng)
        grid.add_random_tile(rng)

        for _ in range(300):
            direction = rng.choice(list(DIRECTION))
            total_before = sum(map(sum, grid.rows()))
            result = grid.move(direction, rng)
            total_after = sum(map(sum, result.grid.rows()))

            merged_total = sum(tile.value for _, _, tile in result.grid.each_cell()
                               if tile and tile.merged_from)
            assert result.score == merged_total

            if result.moved:
                assert total_after - total_before in (2, 4)
                grid = result.grid
            else:
                assert result.score == 0
                assert total_after == total_before

            if result.over:
                break


class TestTerminalDetection:

    def test_full_board_without_pairs_is_over(self):
        grid = Grid.from_rows(CHECKERBOARD)

        assert grid.moves_available() is False
        for direction in DIRECTION:
            assert grid.move(direction, random.Random(0)).moved is False
            assert grid.move(direction, random.Random(0)).over is True

    def test_one_empty_cell_is_not_over(self):
        rows = [list(row) for row in CHECKERBOARD]
        rows[2][1] = 0
        grid = Grid.from_rows(rows)

        assert grid.moves_available() is True

    def test_full_board_with_adjacent_pair_is_not_over(self):
        rows = [list(row) for row in CHECKERBOARD]
        rows[0][0] = 4
        grid = Grid.from_rows(rows)

        assert grid.cells_available() is False
        assert grid.tile_matches_available() is True
        assert grid.moves_available() is True


class TestGridState:
    """Construction, copying and serialization."""

    def test_serialize_and_rebuild(self):
        grid = Grid.from_rows([[2, 0, 0, 4], EMPTY_ROW, [0, 8, 0, 0], EMPTY_ROW])
        rebuilt = Grid.from_state(grid.serialize())

        assert rebuilt == grid
        assert rebuilt.cell_content(Position(1, 2)).value == 8

    def test_cells_are_indexed_by_x_then_y(self):
        grid = Grid.from_rows([[0, 0, 0, 0], [0, 0, 32, 0], EMPTY_ROW, EMPTY_ROW])
        state = grid.serialize()

        assert state["cells"][2][1] == {"position": {"x": 2, "y": 1}, "value": 32}

    def test_copy_shares_no_tiles(self):
        grid = single_row([2, 4, 0, 0])
        clone = grid.copy()

        clone.cell_content(Position(0, 0)).value = 64
        clone.remove_tile(clone.cell_content(Position(1, 0)))

        assert grid.rows()[0] == [2, 4, 0, 0]

    def test_rejects_misplaced_tile(self):
        state = Grid(2).serialize()
        state["cells"][0][0] = {"position": {"x": 1, "y": 1}, "value": 2}

        with pytest.raises(CorruptStateError):
            Grid.from_state(state)

    def test_rejects_non_power_of_two(self):
        state = Grid(2).serialize()
        state["cells"][1][0] = {"position": {"x": 1, "y": 0}, "value": 6}

        with pytest.raises(CorruptStateError):
            Grid.from_state(state)

    def test_rejects_wrong_shape(self):
        with pytest.raises(CorruptStateError):
            Grid.from_state({"size": 3, "cells": [[None, None], [None, None]]})
        with pytest.raises(CorruptStateError):
            Grid.from_state({"cells": []})

    def test_add_random_tile_on_full_grid_is_noop(self):
        grid = Grid.from_rows(CHECKERBOARD)

        assert grid.add_random_tile(random.Random(0)) is None
        assert grid == Grid.from_rows(CHECKERBOARD)

    def test_spawn_values(self):
        assert Grid(2).add_random_tile(random.Random(0)).value in (2, 4)
        four = Grid(2)
        four.add_random_tile(FixedFour())
        assert four.max_tile() == 4


class FixedFour(random.Random):
    def random(self):
        return 0.05


class TestHelpers:

    def test_traversals_start_from_target_edge(self):
        grid = Grid(3)

        assert grid.build_traversals(get_vector(DIRECTION.RIGHT)) == ([2, 1, 0], [0, 1, 2])
        assert grid.build_traversals(get_vector(DIRECTION.DOWN)) == ([0, 1, 2], [2, 1, 0])
        assert grid.build_traversals(get_vector(DIRECTION.LEFT)) == ([0, 1, 2], [0, 1, 2])

    def test_directions_have_distinct_vectors(self):
        vectors = {get_vector(direction) for direction in DIRECTION}

        assert len(vectors) == 4
        assert get_vector(0) == (0, -1)
        assert get_vector(3) == (-1, 0)

    def test_unknown_direction(self):
        with pytest.raises(ValueError):
            get_vector(4)
        with pytest.raises(ValueError):
            Grid(4).move(7)

    def test_find_farthest_position(self):
        grid = single_row([0, 0, 2, 0])
        farthest, following = grid.find_farthest_position(Position(3, 0), get_vector(DIRECTION.LEFT))

        assert farthest == Position(3, 0)
        assert following == Position(2, 0)

        farthest, following = grid.find_farthest_position(Position(2, 0), get_vector(DIRECTION.LEFT))
        assert farthest == Position(0, 0)
        assert following == Position(-1, 0)

    def test_tile_values(self):
        assert is_tile_value(2)
        assert is_tile_value(4096)
        assert not is_tile_value(1)
        assert not is_tile_value(0)
        assert not is_tile_value(12)
        assert not is_tile_value(True)

    def test_tile_positions(self):
        tile = Tile((1, 2), 8)
        tile.save_position()
        tile.update_position(Position(3, 2))

        assert tile.previous_position == Position(1, 2)
        assert (tile.x, tile.y) == (3, 2)
        assert tile.serialize() == {"position": {"x": 3, "y": 2}, "value": 8}
