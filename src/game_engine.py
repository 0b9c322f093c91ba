"""
core game engine: grid, moves, merges, undo and hints
"""
import logging
import random
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_SIZE = 4
HISTORY_SIZE = 5  # undo depth
WIN_VALUE = 2048
FOUR_PROBABILITY = 0.1


class Direction(Enum):
    UP = 'up'
    DOWN = 'down'
    LEFT = 'left'
    RIGHT = 'right'

    @property
    def vector(self):
        """(row, col) step for this direction"""
        return VECTORS[self]


VECTORS = {
    Direction.UP: (-1, 0),
    Direction.DOWN: (1, 0),
    Direction.LEFT: (0, -1),
    Direction.RIGHT: (0, 1),
}


@dataclass(frozen=True)
class Tile:
    """
    a single cell occupant, value 0 means the cell is empty

    merged_from and is_new only describe the move that just executed:
    merged_from holds the (row, col) positions of the two tiles that were
    combined into this one, is_new is set on a freshly spawned tile
    """
    value: int = 0
    row: int = 0
    col: int = 0
    merged_from: Optional[Tuple[Tuple[int, int], Tuple[int, int]]] = None
    is_new: bool = False

    def is_empty(self):
        return self.value == 0


Grid = Tuple[Tuple[Tile, ...], ...]


def empty_grid(size) -> Grid:
    return tuple(tuple(Tile(0, r, c) for c in range(size)) for r in range(size))


def grid_from_values(values) -> Grid:
    return tuple(
        tuple(Tile(value, r, c) for c, value in enumerate(row))
        for r, row in enumerate(values)
    )


def grid_values(grid) -> List[List[int]]:
    return [[tile.value for tile in row] for row in grid]


def clear_markers(grid) -> Grid:
    return tuple(tuple(Tile(tile.value, tile.row, tile.col) for tile in row) for row in grid)


def _with_tile(grid, tile):
    rows = list(grid)
    row = list(rows[tile.row])
    row[tile.col] = tile
    rows[tile.row] = tuple(row)
    return tuple(rows)


@dataclass(frozen=True)
class GameState:
    """immutable snapshot of the engine handed out to callers"""
    grid: Grid
    score: int
    best_score: int
    move_count: int
    is_game_over: bool
    is_won: bool

    @property
    def size(self):
        return len(self.grid)

    @property
    def max_tile(self):
        return max(tile.value for row in self.grid for tile in row)

    @property
    def empty_cells(self):
        return [(tile.row, tile.col) for row in self.grid for tile in row if tile.is_empty()]

    def values(self):
        return grid_values(self.grid)


@dataclass(frozen=True)
class MoveResult:
    grid: Grid
    changed: bool
    score: int  # points gained by merges
    merged: Tuple[int, ...] = ()  # value of every merge, in traversal order


@dataclass(frozen=True)
class Snapshot:
    grid: Grid
    score: int
    move_count: int


def build_traversals(size, direction):
    """
    visiting order for rows and columns, starting from the side
    the tiles are moving towards
    """
    rows = list(range(size))
    cols = list(range(size))
    if direction is Direction.DOWN:
        rows.reverse()
    if direction is Direction.RIGHT:
        cols.reverse()
    return rows, cols


def _within_bounds(size, row, col):
    return 0 <= row < size and 0 <= col < size


def _find_farthest_position(cells, row, col, vector):
    """
    walk along vector while cells are empty

    returns:
        farthest: last empty cell reached (or the start cell)
        next: first occupied cell beyond it, None at the grid edge
    """
    size = len(cells)
    d_row, d_col = vector
    previous = (row, col)
    current = (row + d_row, col + d_col)
    while _within_bounds(size, *current) and cells[current[0]][current[1]].is_empty():
        previous = current
        current = (current[0] + d_row, current[1] + d_col)

    if not _within_bounds(size, *current):
        return previous, None
    return previous, current


def simulate_move(grid, direction) -> MoveResult:
    """
    slide and merge every tile of grid in direction without touching grid

    no tile is spawned. when nothing moves the input grid is returned
    as-is with changed=False
    """
    size = len(grid)
    # markers from the previous move are dropped
    cells = [list(row) for row in clear_markers(grid)]
    rows, cols = build_traversals(size, direction)
    vector = direction.vector

    points = 0
    merged = []
    changed = False

    for r in rows:
        for c in cols:
            tile = cells[r][c]
            if tile.is_empty():
                continue

            farthest, nxt = _find_farthest_position(cells, r, c, vector)
            other = cells[nxt[0]][nxt[1]] if nxt is not None else None

            # a merge product can't absorb another tile in the same move
            if other is not None and other.value == tile.value and other.merged_from is None:
                value = tile.value * 2
                cells[nxt[0]][nxt[1]] = Tile(value, nxt[0], nxt[1], merged_from=((r, c), nxt))
                cells[r][c] = Tile(0, r, c)
                points += value
                merged.append(value)
                changed = True
            elif farthest != (r, c):
                cells[r][c] = Tile(0, r, c)
                cells[farthest[0]][farthest[1]] = Tile(tile.value, farthest[0], farthest[1])
                changed = True

    if not changed:
        return MoveResult(grid, False, 0)
    return MoveResult(tuple(tuple(row) for row in cells), True, points, tuple(merged))


def moves_available(values):
    """check if any move is possible (empty cell or two equal neighbours)"""
    size = len(values)
    for i in range(size):
        for j in range(size):
            if values[i][j] == 0:
                return True
            if j < size - 1 and values[i][j] == values[i][j + 1]:
                return True
            if i < size - 1 and values[i][j] == values[i + 1][j]:
                return True
    return False


def evaluate_board(values):
    """
    heuristic used for hints, higher is better:
    - +100 for every empty cell
    - minus the difference of every pair of adjacent non-empty tiles
    - +1000 if the biggest tile sits in a corner
    """
    size = len(values)
    score = 100 * sum(1 for row in values for value in row if value == 0)

    for i in range(size):
        for j in range(size - 1):
            # horizontal pair in row i, vertical pair in column i
            left, right = values[i][j], values[i][j + 1]
            if left and right:
                score -= abs(left - right)
            top, bottom = values[j][i], values[j + 1][i]
            if top and bottom:
                score -= abs(top - bottom)

    max_value = max(value for row in values for value in row)
    corners = (values[0][0], values[0][-1], values[-1][0], values[-1][-1])
    if max_value in corners:
        score += 1000

    return score


def _is_tile_value(value):
    return value == 0 or (value >= 2 and value & (value - 1) == 0)


class GameEngine:
    """
    2048 game state machine

    owns the grid, score, move counter, win/game over flags and a
    bounded undo history. not thread safe, callers serialize access
    """

    def __init__(self, size=DEFAULT_SIZE, history_size=HISTORY_SIZE, win_value=WIN_VALUE, seed=None):
        """
        args:
            size: side of the square grid
            history_size: how many moves can be undone
            win_value: tile value that wins the game
            seed: seed for tile spawning, None for a random seed
        """
        if size < 2:
            raise ValueError(f"grid size must be at least 2, got {size}")
        if history_size < 1:
            raise ValueError(f"history size must be at least 1, got {history_size}")

        self.size = size
        self.win_value = win_value
        self.rng = random.Random(seed)
        self.best_score = 0
        self.history = deque(maxlen=history_size)

        self.init_game()

    def init_game(self):
        """clear the grid and start a new game with two tiles"""
        self.grid = empty_grid(self.size)
        self.score = 0
        self.move_count = 0
        self.game_over = False
        self.won = False
        # a new game can reach the win tile again
        self.has_won_before = False
        self.history.clear()

        self.add_random_tile()
        self.add_random_tile()
        logger.debug("new %dx%d game started", self.size, self.size)

    def restart(self):
        self.init_game()

    def seed(self, seed):
        """reseed tile spawning"""
        self.rng.seed(seed)

    def add_random_tile(self):
        """add a random tile (2 or 4) to an empty cell, returns the tile or None"""
        empty_cells = [
            (tile.row, tile.col) for row in self.grid for tile in row if tile.is_empty()
        ]
        if not empty_cells:
            return None

        row, col = self.rng.choice(empty_cells)
        # 90% chance for 2 and 10% chance for 4
        value = 4 if self.rng.random() < FOUR_PROBABILITY else 2
        tile = Tile(value, row, col, is_new=True)
        self.grid = _with_tile(self.grid, tile)
        return tile

    def move(self, direction):
        """
        make a move in the specified direction

        returns True if the grid changed. a move that changes nothing
        only drops the markers of the previous move, tile values, score
        and history stay as they are
        """
        if self.game_over:
            return False

        snapshot = Snapshot(self.grid, self.score, self.move_count)
        result = simulate_move(self.grid, direction)
        if not result.changed:
            self.grid = clear_markers(self.grid)
            return False

        self.history.append(snapshot)
        self.grid = result.grid
        self.score += result.score

        if self.win_value in result.merged and not self.has_won_before:
            self.won = True
            self.has_won_before = True
            logger.debug("reached %d after %d moves", self.win_value, self.move_count + 1)

        self.add_random_tile()
        self.move_count += 1

        if not moves_available(grid_values(self.grid)):
            self.game_over = True
            logger.debug("game over with score %d", self.score)

        if self.score > self.best_score:
            self.best_score = self.score

        return True

    def undo(self):
        """go back to the state before the last effective move"""
        if not self.history:
            return False

        snapshot = self.history.pop()
        self.grid = snapshot.grid
        self.score = snapshot.score
        self.move_count = snapshot.move_count
        self.game_over = False
        logger.debug("undo to move %d, %d left", self.move_count, len(self.history))
        return True

    def can_undo(self):
        return len(self.history) > 0

    def get_hint(self):
        """
        one-ply lookahead: the direction whose resulting board evaluates
        best, None if no direction changes the board

        ties go to the earlier direction in UP, DOWN, LEFT, RIGHT order
        """
        best_direction = None
        best_score = None

        for direction in Direction:
            result = simulate_move(self.grid, direction)
            if not result.changed:
                continue
            score = evaluate_board(grid_values(result.grid))
            if best_score is None or score > best_score:
                best_score = score
                best_direction = direction

        return best_direction

    def keep_playing(self):
        """continue after winning, the win can't trigger again this game"""
        self.won = False

    def set_best_score(self, score):
        """restore a persisted best score, never lowers the current one"""
        self.best_score = max(self.best_score, score)

    def load_state(self, values, score=0, move_count=0):
        """
        replace the current game with a saved grid of tile values

        history is cleared, game over is recomputed and a grid that
        already holds the win tile counts as won before
        """
        if len(values) != self.size or any(len(row) != self.size for row in values):
            raise ValueError(f"expected a {self.size}x{self.size} grid")
        if not all(_is_tile_value(value) for row in values for value in row):
            raise ValueError("tile values must be 0 or powers of two >= 2")
        if score < 0 or move_count < 0:
            raise ValueError("score and move count can't be negative")

        self.grid = grid_from_values(values)
        self.score = score
        self.move_count = move_count
        self.history.clear()
        self.won = False
        self.has_won_before = any(value >= self.win_value for row in values for value in row)
        self.game_over = not moves_available(grid_values(self.grid))
        if self.score > self.best_score:
            self.best_score = self.score
        logger.debug("loaded game at move %d, score %d", move_count, score)

    def get_game_state(self):
        return GameState(
            grid=self.grid,
            score=self.score,
            best_score=self.best_score,
            move_count=self.move_count,
            is_game_over=self.game_over,
            is_won=self.won,
        )

    def print_board(self):
        """print the board to console"""
        width = 7 * self.size + 1
        print(f"Score: {self.score}  Best: {self.best_score}  Moves: {self.move_count}")
        print("-" * width)
        for row in self.grid:
            print("|", end="")
            for tile in row:
                if tile.is_empty():
                    print("      |", end="")
                else:
                    print(f"{tile.value:6}|", end="")
            print()
        print("-" * width)
        if self.game_over:
            print("GAME OVER!")
        elif self.won:
            print("YOU WIN!")
        print()
