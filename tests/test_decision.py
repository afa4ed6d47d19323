import math
import random
from collections import Counter

from forager_simulation.config import LearningConfig
from forager_simulation.decision import DecisionEngine
from forager_simulation.geometry import Vec3
from forager_simulation.qtable import QTable

TARGET = Vec3(0.0, 0.0, 0.0)


def _engine(seed=0, **overrides):
    return DecisionEngine(QTable(), LearningConfig(**overrides), rng=random.Random(seed))


def test_state_is_monotonic_in_distance():
    engine = _engine()
    states = [engine.get_state(Vec3(d, 0.0, 0.0), TARGET) for d in [x * 0.37 for x in range(200)]]

    assert states == sorted(states)
    assert engine.get_state(Vec3(4.99, 0.0, 0.0), TARGET) == 0
    assert engine.get_state(Vec3(5.0, 0.0, 0.0), TARGET) == 1
    assert engine.get_state(Vec3(0.0, 0.0, 12.0), TARGET) == 2


def test_reward_sign_follows_progress():
    engine = _engine()

    assert engine.reward(20.0, 10.0) > 0
    assert engine.reward(10.0, 20.0) < 0
    assert engine.reward(10.0, 10.0) == 0
    assert engine.reward(10.0, 10.0, reached=True) == 10.0
    assert engine.reward(10.0, 10.0, revisit=True) == -0.5


def test_reward_weights_progress_near_target_higher():
    engine = _engine()
    assert engine.reward(6.0, 2.0) > engine.reward(44.0, 40.0)


def test_update_moves_value_toward_target_return():
    engine = _engine()
    engine.q_table.set(2, 5, 1.0)

    new = engine.update_q(1, 3, 0.5, 2)

    expected = 0.0 + 0.1 * (0.5 + 0.95 * 1.0 - 0.0)
    assert math.isclose(new, expected)
    assert math.isclose(engine.q_table.get(1, 3), expected)


def test_repeated_positive_updates_are_non_decreasing():
    rng = random.Random(11)
    for seed in range(20):
        engine = _engine(seed, exploration_rate=0.0)
        reward = rng.uniform(0.01, 1.0)
        values = [engine.update_q(3, 0, reward, 2) for _ in range(50)]
        assert all(b >= a for a, b in zip(values, values[1:]))


def test_greedy_choice_breaks_ties_randomly():
    engine = _engine(3, exploration_rate=0.0)
    engine.q_table.set(0, 2, 1.0)
    engine.q_table.set(0, 6, 1.0)

    picks = Counter(engine.choose_action(0) for _ in range(400))

    assert set(picks) == {2, 6}
    assert min(picks.values()) > 120


def test_cold_start_exploration_is_uniform():
    engine = _engine(42, exploration_rate=1.0)
    trials = 1000

    counts = Counter(engine.choose_action(0) for _ in range(trials))

    expected = trials / 8
    chi_square = sum((counts.get(a, 0) - expected) ** 2 / expected for a in range(8))
    # 0.999 quantile of chi-square with 7 degrees of freedom
    assert chi_square < 24.32


def test_compute_destination_is_relative_to_heading():
    engine = _engine()
    origin = Vec3(10.0, 0.0, 10.0)

    ahead = engine.compute_destination(origin, 0.0, 0)
    assert math.isclose(ahead.x, 10.0, abs_tol=1e-9)
    assert math.isclose(ahead.z, 20.0)

    quarter = engine.compute_destination(origin, 0.0, 2)
    assert math.isclose(quarter.x, 20.0)
    assert math.isclose(quarter.z, 10.0, abs_tol=1e-9)

    turned = engine.compute_destination(origin, math.pi / 2, 0)
    assert math.isclose(turned.x, quarter.x) and math.isclose(turned.z, quarter.z, abs_tol=1e-9)


def test_step_learns_and_retries_avoided_destinations():
    engine = _engine(5, exploration_rate=1.0)
    start = Vec3(30.0, 0.0, 0.0)
    engine.begin(start, 0.0, TARGET)
    first_state, first_action = engine.state, engine.action

    seen = []

    def avoid_first_two(point):
        seen.append(point)
        return len(seen) <= 2

    here = Vec3(22.0, 0.0, 0.0)
    dest = engine.step(here, 0.0, TARGET, is_avoided=avoid_first_two)

    assert len(seen) == 3
    assert dest == seen[2]
    assert engine.q_table.get(first_state, first_action) > 0
    assert engine.state == engine.get_state(here, TARGET)


def test_step_falls_through_to_last_candidate_when_everything_is_avoided():
    engine = _engine(9, destination_retries=4)
    engine.begin(Vec3(10.0, 0.0, 0.0), 0.0, TARGET)
    seen = []

    def avoid_all(point):
        seen.append(point)
        return True

    dest = engine.step(Vec3(12.0, 0.0, 0.0), 0.0, TARGET, is_avoided=avoid_all)

    assert len(seen) == 4
    assert dest == seen[-1]


def test_revisiting_a_state_is_penalised_even_when_avoidance_succeeds():
    engine = _engine(1, exploration_rate=0.0)
    pos = Vec3(12.0, 0.0, 0.0)
    engine.begin(pos, 0.0, TARGET)

    engine.step(pos, 0.0, TARGET, is_avoided=lambda p: False)

    assert math.isclose(engine.last_reward, -0.5)


def test_terminal_step_adds_goal_bonus_and_proposes_nothing():
    engine = _engine(2)
    engine.begin(Vec3(3.0, 0.0, 0.0), 0.0, TARGET)

    dest = engine.step(Vec3(1.0, 0.0, 0.0), 0.0, TARGET, reached=True)

    assert dest is None
    assert engine.last_reward > 10.0 - 0.5
