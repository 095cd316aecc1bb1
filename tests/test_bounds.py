"""
Tests for variable bounds, constraint bounds and the starting point.
"""

import numpy as np

from conftest import HORIZON, make_inputs
from jaxobca import (
    BOUND_INFINITY,
    DistanceApproachOptions,
    DistanceApproachProblem,
    ObstacleRow,
    StateIndex,
)


def test_starting_point_within_bounds(problem):
    bounds = problem.bounds()
    x = problem.starting_point()
    assert x.shape == (problem.num_variables,)
    assert bounds.contains(x)


def test_first_and_last_state_pinned(problem, problem_inputs):
    bounds = problem.bounds()
    layout = problem.layout
    first = layout.state_slice().start + np.arange(4)
    last = layout.state_index(HORIZON, 0) + np.arange(4)
    np.testing.assert_array_equal(bounds.x_l[first], problem_inputs["x0"])
    np.testing.assert_array_equal(bounds.x_u[first], problem_inputs["x0"])
    np.testing.assert_array_equal(bounds.x_l[last], problem_inputs["xf"])
    np.testing.assert_array_equal(bounds.x_u[last], problem_inputs["xf"])


def test_interior_states_use_map_and_speed_limits(problem):
    bounds = problem.bounds()
    options = problem.options
    layout = problem.layout
    assert bounds.x_l[layout.state_index(2, StateIndex.X)] == -5.0
    assert bounds.x_u[layout.state_index(2, StateIndex.Y)] == 10.0
    assert bounds.x_u[layout.state_index(2, StateIndex.PHI)] == BOUND_INFINITY
    assert bounds.x_l[layout.state_index(2, StateIndex.V)] == -options.max_speed_reverse
    assert bounds.x_u[layout.control_index(1, 0)] == options.max_steer_angle


def test_fixed_time_collapses_time_scaling(fixed_time_problem):
    bounds = fixed_time_problem.bounds()
    time = fixed_time_problem.layout.time_slice()
    np.testing.assert_array_equal(bounds.x_l[time], 1.0)
    np.testing.assert_array_equal(bounds.x_u[time], 1.0)
    np.testing.assert_array_equal(fixed_time_problem.starting_point()[time], 1.0)


def test_time_warm_start_used_when_time_is_free(problem_inputs):
    problem_inputs["time_ws"] = np.full(HORIZON + 1, 1.1)
    problem = DistanceApproachProblem(**problem_inputs)
    np.testing.assert_allclose(problem.starting_point()[problem.layout.time_slice()], 1.1)


def test_constraint_bounds_per_row_type(problem):
    bounds = problem.bounds()
    cl = problem.constraint_layout
    options = problem.options

    dynamics = slice(cl.dynamics_start, cl.steer_rate_start)
    np.testing.assert_array_equal(bounds.g_l[dynamics], 0.0)
    np.testing.assert_array_equal(bounds.g_u[dynamics], 0.0)

    assert bounds.g_l[cl.steer_rate_index(0)] == -options.max_steer_rate
    assert bounds.g_u[cl.steer_rate_index(HORIZON - 1)] == options.max_steer_rate

    assert bounds.g_l[cl.stitching_index(1)] == bounds.g_u[cl.stitching_index(1)] == 0.0

    for k in range(HORIZON + 1):
        norm_row = cl.obstacle_index(k, 0, ObstacleRow.DUAL_NORM)
        distance_row = cl.obstacle_index(k, 0, ObstacleRow.SIGNED_DISTANCE)
        assert bounds.g_l[norm_row] == -BOUND_INFINITY
        assert bounds.g_u[norm_row] == 1.0
        assert bounds.g_l[distance_row] == options.min_safety_distance
        assert bounds.g_u[distance_row] == BOUND_INFINITY
        for row in (ObstacleRow.BALANCE_X, ObstacleRow.BALANCE_Y):
            index = cl.obstacle_index(k, 0, row)
            assert bounds.g_l[index] == bounds.g_u[index] == 0.0


def test_warm_start_outside_map_is_clipped():
    inputs = make_inputs()
    inputs["x_ws"][1, 2] = 50.0
    problem = DistanceApproachProblem(**inputs)
    x = problem.starting_point()
    assert x[problem.layout.state_index(2, StateIndex.Y)] == 10.0
    assert problem.bounds().contains(x)


def test_dual_upper_bounds_follow_options(problem_inputs):
    options = DistanceApproachOptions(max_lambda=5.0, max_miu=7.0)
    problem = DistanceApproachProblem(**problem_inputs, options=options)
    bounds = problem.bounds()
    np.testing.assert_array_equal(bounds.x_u[problem.layout.l_slice()], 5.0)
    np.testing.assert_array_equal(bounds.x_u[problem.layout.n_slice()], 7.0)
    np.testing.assert_array_equal(bounds.x_l[problem.layout.n_slice()], 0.0)


def test_bounds_are_read_only(problem):
    bounds = problem.bounds()
    assert not bounds.x_l.flags.writeable
    assert not bounds.g_u.flags.writeable
