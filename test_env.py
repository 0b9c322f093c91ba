"""
Tests for the 2048 gymnasium environment
"""
import numpy as np
import pytest

from game_gym import Game2048Env


def board(*rows):
    rows = [list(row) + [0] * (4 - len(row)) for row in rows]
    return rows + [[0, 0, 0, 0] for _ in range(4 - len(rows))]


@pytest.fixture
def env():
    env = Game2048Env(seed=0)
    env.reset(seed=0)
    yield env
    env.close()


def test_reset(env):
    observation, info = env.reset()
    assert observation.shape == (4, 4)
    assert observation.dtype == np.int32
    assert np.count_nonzero(observation) == 2
    assert env.observation_space.contains(observation)
    assert info["score"] == 0


def test_reset_with_seed_is_reproducible():
    a, b = Game2048Env(), Game2048Env()
    obs_a, _ = a.reset(seed=11)
    obs_b, _ = b.reset(seed=11)
    assert np.array_equal(obs_a, obs_b)

    for action in [0, 2, 1, 3, 2, 0]:
        step_a = a.step(action)
        step_b = b.step(action)
        assert np.array_equal(step_a[0], step_b[0])
        assert step_a[1] == step_b[1]


def test_random_steps(env):
    for _ in range(20):
        action = env.action_space.sample()
        observation, reward, terminated, truncated, info = env.step(action)

        assert env.observation_space.contains(observation)
        assert reward >= 0
        assert not truncated
        assert info["max_tile"] == observation.max()
        assert set(info) >= {"score", "best_score", "moved", "points_gained", "afterstate", "won"}
        if terminated:
            break


def test_step_reports_reward_and_afterstate(env):
    env.game.load_state(board([2, 2, 0, 0]))

    afterstate, points, valid = env.get_afterstate(2)
    assert valid
    assert points == 4
    assert afterstate[0].tolist() == [4, 0, 0, 0]
    assert np.count_nonzero(afterstate) == 1

    observation, reward, terminated, truncated, info = env.step(2)
    assert reward == 4.0
    assert info["moved"]
    assert info["points_gained"] == 4
    assert np.array_equal(info["afterstate"], afterstate)
    assert np.array_equal(env.last_afterstate, afterstate)
    # afterstate plus the spawned tile
    assert np.count_nonzero(observation) == 2
    assert not terminated


def test_invalid_move(env):
    env.game.load_state(board([2, 0, 0, 0]))
    before = env.game.get_game_state()

    afterstate, points, valid = env.get_afterstate(2)
    assert (afterstate, points, valid) == (None, 0, False)

    observation, reward, terminated, truncated, info = env.step(2)
    assert reward == 0.0
    assert not info["moved"]
    assert info["afterstate"] is None
    assert env.game.get_game_state() == before


def test_valid_actions_and_hint(env):
    env.game.load_state(board([2, 0, 0, 0]))
    # 1 = down, 3 = right
    assert env.valid_actions() == [1, 3]

    env.game.load_state(board([2, 2, 0, 0]))
    assert env.hint_action() == 2


def test_terminated_on_game_over(env):
    env.game.load_state([
        [2, 4, 2, 4],
        [4, 2, 4, 2],
        [2, 4, 2, 4],
        [4, 2, 4, 2],
    ])
    assert env.valid_actions() == []
    assert env.hint_action() is None

    _, reward, terminated, _, _ = env.step(0)
    assert terminated
    assert reward == 0.0


def test_win_is_reported(env):
    env.game.load_state(board([1024, 1024, 0, 0]))
    _, reward, _, _, info = env.step(2)
    assert info["won"]
    assert reward == 2048.0


def test_invalid_action(env):
    with pytest.raises(ValueError):
        env.step(4)


def test_numpy_actions(env):
    env.game.load_state(board([2, 2]))
    assert env.hint_action() == 2
    _, reward, _, _, info = env.step(np.array(2))
    assert info["moved"]
    assert reward == 4.0
    with pytest.raises(ValueError):
        env.step(np.array(7))


def test_render(env, capsys):
    env.render()
    assert "Score:" in capsys.readouterr().out
