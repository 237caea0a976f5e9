# cli_driver.py
# This file is intended to be run to play or watch the 2048 game on the CLI

import logging
from typing import Any, Dict

from core import DIRECTION, Grid
from game import Actuator, Game, JsonFileStorage, MemoryStorage
from search import AutoPlayer, select_move
from settings import get_settings

logger = logging.getLogger(__name__)

KEY_DIRECTIONS = {'W': DIRECTION.UP, 'D': DIRECTION.RIGHT, 'S': DIRECTION.DOWN, 'A': DIRECTION.LEFT}


class ConsoleActuator(Actuator):
    """Prints the board, score and game status after every change."""

    def actuate(self, grid: Grid, metadata: Dict[str, Any]) -> None:
        display_board_state(grid, metadata)

    def continue_game(self) -> None:
        print("Continuing.")


def main():
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    storage = JsonFileStorage(settings.state_file) if settings.state_file else MemoryStorage()
    game = Game(
        size=settings.board_size,
        storage=storage,
        actuator=ConsoleActuator(),
        start_tiles=settings.start_tiles,
        win_tile=settings.win_tile,
    )
    player = AutoPlayer(game, depth=settings.search_depth, interval=settings.autoplay_interval)

    prompt = "Enter move (W/A/S/D), R restart, K keep playing, P auto play, H hint, Q quit: "
    try:
        while True:
            command = input(prompt).strip().upper()

            if command == 'Q':
                print("Quitting game.")
                break
            if command == 'P':
                running = player.toggle()
                print("Auto play on." if running else "Auto play off.")
                continue

            with player.lock:
                if command == 'R':
                    game.restart()
                elif command == 'K':
                    game.continue_playing()
                elif command == 'H':
                    hint = select_move(game.serialize(), settings.search_depth, win_tile=game.win_tile)
                    print(f"Suggested move: {hint.name}")
                elif command in KEY_DIRECTIONS:
                    if game.is_game_terminated():
                        print("The game has ended. Press R to restart or K to keep playing after a win.")
                    elif not game.move(KEY_DIRECTIONS[command]):
                        print("Move did not change the board. Try a different direction.")
                else:
                    print("Invalid input.")
    except (KeyboardInterrupt, EOFError):
        print("\nQuitting game.")
    finally:
        player.stop()


# --- Display Function ---
def display_board_state(grid: Grid, metadata: Dict[str, Any]):
    """Prints the board, score, and game status to the console."""
    print(f"\nScore: {metadata['score']}  Best: {metadata['bestScore']}")
    if metadata["over"]:
        print("GAME OVER!")
    elif metadata["won"]:
        print("YOU WON!" if metadata["terminated"] else "Status: KEEP PLAYING")
    else:
        print("Status: IN_PROGRESS")

    for row in grid.rows():
        print("\t".join(str(value) if value else "." for value in row))
    print("-" * (grid.size * 6)) # Adjust width based on board size


if __name__ == "__main__":
    main()
