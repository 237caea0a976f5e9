# schemas.py
# Pydantic models describing the persisted game snapshot.

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core import is_tile_value


class PositionModel(BaseModel):
    """A cell coordinate."""
    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)


class TileModel(BaseModel):
    """A serialized tile."""
    position: PositionModel
    value: int = Field(..., description="Tile value, a power of two no smaller than 2.")

    @field_validator("value")
    @classmethod
    def value_is_power_of_two(cls, value: int) -> int:
        if not is_tile_value(value):
            raise ValueError(f"{value} is not a valid tile value")
        return value


class GridModel(BaseModel):
    """A serialized grid: size x size cells indexed as cells[x][y]."""
    size: int = Field(..., gt=0)
    cells: List[List[Optional[TileModel]]]

    @model_validator(mode="after")
    def cells_match_size(self) -> "GridModel":
        if len(self.cells) != self.size or any(len(column) != self.size for column in self.cells):
            raise ValueError(f"cells must be a {self.size}x{self.size} array")
        for x, column in enumerate(self.cells):
            for y, tile in enumerate(column):
                if tile is not None and (tile.position.x, tile.position.y) != (x, y):
                    raise ValueError(f"tile stored at ({x}, {y}) has position "
                                     f"({tile.position.x}, {tile.position.y})")
        return self


class GameStateModel(BaseModel):
    """The complete persisted state of one game."""
    model_config = ConfigDict(populate_by_name=True)

    grid: GridModel
    score: int = Field(..., ge=0, description="Current score of the game.")
    over: bool = Field(default=False, description="True once no moves remain.")
    won: bool = Field(default=False, description="True once the win tile has been reached.")
    keep_playing: bool = Field(
        default=False,
        alias="keepPlaying",
        description="True if play continues after a win."
    )

    def to_state(self) -> dict:
        """Dumps the model in the snapshot layout used by Game.serialize()."""
        return self.model_dump(by_alias=True)
