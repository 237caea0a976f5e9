import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

import core
import search
from game import Game, MemoryStorage
from schemas import GameStateModel
from settings import get_settings

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title=settings.app_name,
    description="A stateless API for playing the 2048 game. "\
                "Keep the game snapshot on the client side and send it back with every move.",
    version=settings.app_version
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Pydantic Models for API requests and responses ---

class NewGameSettings(BaseModel):
    """Settings for creating a new game."""
    size: Optional[int] = Field(
        default=settings.board_size,
        gt=1, # Board size must be at least 2x2
        description="Size of the N x N game board (e.g., 4 for a 4x4 board)."
    )
    win_tile: Optional[int] = Field(
        default=settings.win_tile,
        gt=0,
        description="The tile value to achieve for winning the game (e.g., 2048)."
    )


class NewGameData(GameStateModel):
    """Initial snapshot of a new game, with the win tile it was created for."""
    win_tile: int = Field(..., gt=0, description="The tile value required to win this game instance.")


class MoveRequestData(BaseModel):
    """Data required to make a move."""
    state: GameStateModel = Field(..., description="Game snapshot before the move.")
    direction: core.DIRECTION = Field(
        ...,
        description="Direction of the move (0 UP, 1 RIGHT, 2 DOWN, 3 LEFT)."
    )
    win_tile: int = Field(default=settings.win_tile, gt=0, description="The win condition tile for this game.")


class MoveResponseData(BaseModel):
    """Response after a move, including the new game state and move effectiveness."""
    state: GameStateModel
    move_was_effective: bool = Field(
        ...,
        description="True if the move resulted in a change to the board state, False otherwise."
    )
    terminated: bool = Field(..., description="True if the game is over, or won without keep playing.")
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a move was ignored or the game ended."
    )


class SuggestRequestData(BaseModel):
    """Data required to ask the automated player for a move."""
    state: GameStateModel
    depth: int = Field(
        default=settings.search_depth,
        ge=0,
        le=6,
        description="Additional moves to look ahead past the suggested one."
    )
    win_tile: int = Field(default=settings.win_tile, gt=0)


class SuggestResponseData(BaseModel):
    direction: core.DIRECTION
    name: str


def _load_game(state: GameStateModel, win_tile: int) -> Game:
    """Rebuilds a Game from a client snapshot. GameStateModel has already validated the grid."""
    storage = MemoryStorage({MemoryStorage.GAME_STATE_KEY: state.to_state()})
    return Game(size=state.grid.size, storage=storage, win_tile=win_tile)

# --- API Endpoints ---

@app.post("/game/new", response_model=NewGameData, summary="Start a New 2048 Game")
@limiter.limit(settings.rate_limit)
async def start_new_game(request: Request, new_game: NewGameSettings):
    """
    Initializes a new 2048 game based on the provided settings (size and win_tile).

    Returns the initial snapshot: a grid with two random tiles, a score of 0
    and the win_tile to send back with every move.
    """
    try:
        win_tile = new_game.win_tile or settings.win_tile
        game = Game(size=new_game.size or settings.board_size, start_tiles=settings.start_tiles,
                    win_tile=win_tile)
        return NewGameData.model_validate({**game.serialize(), "win_tile": game.win_tile})
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Unexpected error in /game/new")
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred during game creation: {str(e)}")


@app.post("/game/move", response_model=MoveResponseData, summary="Make a Move in the Game")
@limiter.limit(settings.rate_limit)
async def make_move(request: Request, request_data: MoveRequestData):
    """
    Processes a player's move in the game.

    The API will slide and merge the tiles, add a new random tile if the board
    changed, and update the score and the won/over flags. Moves sent for a
    terminated game are ignored.
    """
    game = _load_game(request_data.state, request_data.win_tile)
    message_for_client: Optional[str] = None

    try:
        if game.is_game_terminated():
            move_was_effective = False
            message_for_client = "Game is terminated; move ignored."
        else:
            move_was_effective = game.move(request_data.direction)
            if not move_was_effective:
                message_for_client = "Move was not effective; board state unchanged by slide."

        if game.over:
            message_for_client = "Game Over. No more valid moves."
        elif game.won and not game.keep_playing:
            message_for_client = "Congratulations! You won!"

        return MoveResponseData(
            state=GameStateModel.model_validate(game.serialize()),
            move_was_effective=move_was_effective,
            terminated=game.is_game_terminated(),
            message=message_for_client
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error processing move: {str(e)}")
    except Exception as e:
        logger.exception("Unexpected error in /game/move")
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while processing the move: {str(e)}")


@app.post("/game/suggest", response_model=SuggestResponseData, summary="Suggest the Next Move")
@limiter.limit(settings.rate_limit)
async def suggest_move(request: Request, request_data: SuggestRequestData):
    """
    Runs the look-ahead search on the snapshot and returns the best direction.
    """
    try:
        direction = search.select_move(request_data.state.to_state(), request_data.depth,
                                       win_tile=request_data.win_tile)
        return SuggestResponseData(direction=direction, name=direction.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error searching for a move: {str(e)}")
    except Exception as e:
        logger.exception("Unexpected error in /game/suggest")
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred during search: {str(e)}")
