import gymnasium as gym
from gymnasium import spaces
import numpy as np
from game_engine import Direction, GameEngine, DEFAULT_SIZE, grid_values, simulate_move


class Game2048Env(gym.Env):
    """
    gymnasium environment driving a GameEngine

    - observation is the raw board (tile values, not log2)
    - reward is the points gained by merges in the step
    - afterstate (board after the slide, before the random tile) is
      reported in info for afterstate learning
    """

    metadata = {"render_modes": ["human"]}

    def __init__(self, size=DEFAULT_SIZE, seed=None):
        super().__init__()

        self.game = GameEngine(size=size, seed=seed)

        # actions -> 4 possible moves
        # 0 = up, 1 = down, 2 = left, 3 = right
        self.action_space = spaces.Discrete(4)

        self.observation_space = spaces.Box(
            low=0,
            high=131072,
            shape=(size, size),
            dtype=np.int32
        )

        self.action_to_direction = dict(enumerate(Direction))
        self.direction_to_action = {d: a for a, d in self.action_to_direction.items()}

        # board after move, before random tile
        self.last_afterstate = None

    def _direction(self, action):
        action = int(action)
        if action not in self.action_to_direction:
            raise ValueError(f"invalid action {action}, expected 0-3")
        return self.action_to_direction[action]

    def _get_observation(self):
        return np.array(self.game.get_game_state().values(), dtype=np.int32)

    def get_afterstate(self, action):
        """
        deterministic result of the player's action, the engine is not touched

        returns:
            afterstate_board: board after the move (before random tile), None if invalid
            reward: points earned from merging
            valid: if the move changes the board
        """
        result = simulate_move(self.game.grid, self._direction(action))
        if not result.changed:
            return None, 0, False

        afterstate_board = np.array(grid_values(result.grid), dtype=np.int32)
        return afterstate_board, result.score, True

    def valid_actions(self):
        """actions that would change the board"""
        if self.game.game_over:
            return []
        return [
            action for action, direction in self.action_to_direction.items()
            if simulate_move(self.game.grid, direction).changed
        ]

    def hint_action(self):
        """engine hint as an action index, None when stuck"""
        direction = self.game.get_hint()
        if direction is None:
            return None
        return self.direction_to_action[direction]

    def reset(self, seed=None, options=None):
        """reset the game to start a new episode"""
        super().reset(seed=seed)

        if seed is not None:
            self.game.seed(seed)
        self.game.restart()
        self.last_afterstate = None

        observation = self._get_observation()
        info = {"score": self.game.score, "best_score": self.game.best_score}

        return observation, info

    def step(self, action):
        """take one step in the environment"""
        afterstate_board, _, _ = self.get_afterstate(action)

        score_before = self.game.score
        moved = self.game.move(self._direction(action))
        points = self.game.score - score_before

        reward = float(points) if moved else 0.0
        observation = self._get_observation()

        state = self.game.get_game_state()
        terminated = state.is_game_over
        truncated = False

        if moved:
            self.last_afterstate = afterstate_board

        info = {
            "score": state.score,
            "best_score": state.best_score,
            "moved": moved,
            "points_gained": points,
            "afterstate": afterstate_board if moved else None,
            "max_tile": state.max_tile,
            "won": state.is_won,
        }

        return observation, reward, terminated, truncated, info

    def render(self, mode="human"):
        """display the game state"""
        if mode == "human":
            self.game.print_board()

    def close(self):
        pass
