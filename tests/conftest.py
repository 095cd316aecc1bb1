"""
Pytest configuration for the jaxobca test suite.

Provides a small parking scenario: the vehicle drives straight along
y = 3 at constant speed while one box obstacle sits above its path. The warm
start is dynamically consistent, so every dynamics residual vanishes at the
starting point.
"""

import numpy as np
import pytest

import jaxobca  # noqa: F401  (enables float64 before any array is created)
from jaxobca import DistanceApproachOptions, DistanceApproachProblem


HORIZON = 5
TS = 0.5
SPEED = 1.0
EGO = [3.89, 1.055, 1.043, 1.055]
WHEELBASE = 2.8448

# Box obstacle 1 <= x <= 3, 7 <= y <= 9 as A p <= b
OBSTACLE_A = [[1.0, 0.0], [0.0, 1.0], [-1.0, 0.0], [0.0, -1.0]]
OBSTACLE_B = [3.0, 9.0, -1.0, -7.0]


def make_inputs(horizon=HORIZON, ts=TS, **overrides):
    """Construction keyword arguments for a straight drive past one obstacle."""
    stages = horizon + 1
    x_ws = np.zeros((4, stages))
    x_ws[0] = SPEED * ts * np.arange(stages)
    x_ws[1] = 3.0
    x_ws[3] = SPEED

    inputs = dict(
        horizon=horizon,
        ts=ts,
        ego=EGO,
        x_ws=x_ws,
        u_ws=np.zeros((2, horizon)),
        l_warm_up=np.full((4, stages), 0.1),
        n_warm_up=np.full((4, stages), 0.1),
        x0=x_ws[:, 0].copy(),
        xf=x_ws[:, -1].copy(),
        last_time_u=np.zeros(2),
        xy_bounds=[-5.0, 15.0, -5.0, 10.0],
        obstacles_edges_num=[4],
        obstacles_num=1,
        obstacles_a=OBSTACLE_A,
        obstacles_b=OBSTACLE_B,
        wheelbase=WHEELBASE,
    )
    inputs.update(overrides)
    return inputs


@pytest.fixture
def problem_inputs():
    return make_inputs()


@pytest.fixture
def problem(problem_inputs):
    return DistanceApproachProblem(**problem_inputs)


@pytest.fixture
def declared_problem(problem):
    problem.describe_structure()
    return problem


@pytest.fixture
def fixed_time_problem(problem_inputs):
    problem_inputs["time_ws"] = np.full(HORIZON + 1, 1.1)
    return DistanceApproachProblem(
        **problem_inputs, options=DistanceApproachOptions(use_fix_time=True)
    )


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


def perturbed_point(problem, rng, scale=0.05):
    """Interior point near the starting point, away from the pinned bounds."""
    x = problem.starting_point() + scale * rng.standard_normal(problem.num_variables)
    bounds = problem.bounds()
    return np.clip(x, bounds.x_l, bounds.x_u)


@pytest.fixture
def perturb(rng):
    def _perturb(problem, scale=0.05):
        return perturbed_point(problem, rng, scale)

    return _perturb
