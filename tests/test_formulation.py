"""
Tests for the objective and constraint formulas.
"""

import jax.numpy as jnp
import numpy as np
import pytest

from conftest import HORIZON, TS, WHEELBASE
from jaxobca import DistanceApproachOptions, DistanceApproachProblem, ObstacleRow


def rotation(phi):
    c, s = np.cos(phi), np.sin(phi)
    return np.array([[c, -s], [s, c]])


def test_unpack_shapes(problem):
    states, controls, time_scaling, dual_l, dual_n = problem.formulation.unpack(
        jnp.asarray(problem.starting_point())
    )
    assert states.shape == (HORIZON + 1, 4)
    assert controls.shape == (HORIZON, 2)
    assert time_scaling.shape == (HORIZON + 1,)
    assert dual_l.shape == (HORIZON + 1, 4)
    assert dual_n.shape == (HORIZON + 1, 1, 4)


def test_objective_is_zero_on_matching_reference(problem_inputs):
    options = DistanceApproachOptions(
        weight_input_steer=0.0,
        weight_input_a=0.0,
    )
    problem = DistanceApproachProblem(**problem_inputs, options=options)
    # Tracks the warm start exactly, zero controls, constant time scaling
    assert float(problem.formulation.objective(jnp.asarray(problem.starting_point()))) == 0.0


def test_objective_terms(problem_inputs):
    options = DistanceApproachOptions(
        weight_state_x=0.0,
        weight_state_y=0.0,
        weight_state_phi=0.0,
        weight_input_steer=0.0,
        weight_input_a=1.0,
        weight_rate_steer=0.0,
        weight_rate_a=2.0,
        weight_stitching_steer=0.0,
        weight_stitching_a=3.0,
        weight_first_order_time=0.0,
        weight_second_order_time=0.0,
    )
    problem = DistanceApproachProblem(**problem_inputs, options=options)
    layout = problem.layout
    x = problem.starting_point()
    x[layout.control_index(0, 1)] = 0.5
    # input 1 * 0.25 + rate 2 * 0.25 + stitching 3 * 0.25
    assert float(problem.formulation.objective(jnp.asarray(x))) == pytest.approx(1.5)


def test_time_smoothness_terms(problem_inputs):
    options = DistanceApproachOptions(
        weight_state_x=0.0,
        weight_state_y=0.0,
        weight_state_phi=0.0,
        weight_input_steer=0.0,
        weight_input_a=0.0,
        weight_first_order_time=1.0,
        weight_second_order_time=10.0,
    )
    problem = DistanceApproachProblem(**problem_inputs, options=options)
    x = problem.starting_point()
    x[problem.layout.time_index(2)] = 1.1
    # first order: 2 * 0.01, second order: (0.01 + 0.04 + 0.01) * 10
    assert float(problem.formulation.objective(jnp.asarray(x))) == pytest.approx(0.02 + 0.6)


def test_dynamics_residual_scales_with_time(problem):
    formulation = problem.formulation
    states, controls, time_scaling, _, _ = formulation.unpack(
        jnp.asarray(problem.starting_point())
    )
    dt = TS * formulation.stage_scaling(time_scaling * 1.2)[:-1]
    residual = np.asarray(formulation.dynamics(states, controls, dt)).reshape(HORIZON, 4)
    # x advances 0.5 per stage while the model predicts 0.6
    np.testing.assert_allclose(residual[:, 0], -0.1, atol=1e-12)
    np.testing.assert_allclose(residual[:, 1:], 0.0, atol=1e-12)


def test_dynamics_heading_rate(problem):
    formulation = problem.formulation
    states = jnp.array([[0.0, 0.0, 0.0, 2.0], [0.0, 0.0, 0.0, 2.0]])
    controls = jnp.array([[0.3, 0.0]])
    residual = np.asarray(formulation.dynamics(states, controls, jnp.array([TS])))
    assert residual[2] == pytest.approx(-TS * 2.0 * np.tan(0.3) / WHEELBASE)
    assert residual[0] == pytest.approx(-TS * 2.0)


def test_steer_rate_starts_from_last_control(problem_inputs):
    problem_inputs["last_time_u"] = np.array([0.1, 0.0])
    problem = DistanceApproachProblem(**problem_inputs)
    formulation = problem.formulation
    controls = jnp.array([[0.2, 0.0], [0.5, 0.0], [0.5, 0.0], [0.4, 0.0], [0.4, 0.0]])
    rate = np.asarray(formulation.steer_rate(controls, jnp.full(HORIZON, 0.5)))
    np.testing.assert_allclose(rate, [0.2, 0.6, 0.0, -0.2, 0.0])


def test_obstacle_rows_for_face_certificate(problem):
    """Vehicle below the obstacle: its top face against the obstacle bottom edge."""
    formulation = problem.formulation
    vehicle = problem.vehicle
    stages = HORIZON + 1
    states = np.zeros((stages, 4))
    states[:, 0] = 2.0 - vehicle.center_offset
    states[:, 1] = 3.0
    dual_l = np.zeros((stages, 4))
    dual_l[:, 3] = 1.0
    dual_n = np.zeros((stages, 1, 4))
    dual_n[:, 0, 1] = 1.0

    rows = np.asarray(
        formulation.obstacle_constraints(
            jnp.asarray(states), jnp.asarray(dual_l), jnp.asarray(dual_n)
        )
    ).reshape(stages, 1, 4)
    clearance = 7.0 - (3.0 + vehicle.width / 2)
    np.testing.assert_allclose(rows[:, 0, ObstacleRow.DUAL_NORM], 1.0)
    np.testing.assert_allclose(rows[:, 0, ObstacleRow.BALANCE_X], 0.0, atol=1e-12)
    np.testing.assert_allclose(rows[:, 0, ObstacleRow.BALANCE_Y], 0.0, atol=1e-12)
    np.testing.assert_allclose(rows[:, 0, ObstacleRow.SIGNED_DISTANCE], clearance)


def test_obstacle_rows_match_duality_formulas(problem, rng):
    formulation = problem.formulation
    vehicle = problem.vehicle
    data = problem.data
    stages = HORIZON + 1
    states = rng.uniform(-2.0, 2.0, (stages, 4))
    dual_l = rng.uniform(0.0, 1.0, (stages, 4))
    dual_n = rng.uniform(0.0, 1.0, (stages, 1, 4))

    rows = np.asarray(
        formulation.obstacle_constraints(
            jnp.asarray(states), jnp.asarray(dual_l), jnp.asarray(dual_n)
        )
    ).reshape(stages, 1, 4)

    box_g = np.array([[1.0, 0.0], [0.0, 1.0], [-1.0, 0.0], [0.0, -1.0]])
    for k in range(stages):
        x, y, phi, _ = states[k]
        a_t_l = data.obstacles_a.T @ dual_l[k]
        center = np.array([x, y]) + vehicle.center_offset * np.array([np.cos(phi), np.sin(phi)])
        balance = box_g.T @ dual_n[k, 0] + rotation(phi).T @ a_t_l
        distance = -vehicle.box_offsets @ dual_n[k, 0] + (
            data.obstacles_a @ center - data.obstacles_b
        ) @ dual_l[k]

        assert rows[k, 0, ObstacleRow.DUAL_NORM] == pytest.approx(a_t_l @ a_t_l)
        np.testing.assert_allclose(
            rows[k, 0, [ObstacleRow.BALANCE_X, ObstacleRow.BALANCE_Y]], balance, atol=1e-12
        )
        assert rows[k, 0, ObstacleRow.SIGNED_DISTANCE] == pytest.approx(distance)


def test_stitching_rows_present_only_when_enabled(problem_inputs):
    problem_inputs["last_time_u"] = np.array([0.1, -0.2])
    with_rows = DistanceApproachProblem(**problem_inputs)
    without = DistanceApproachProblem(
        **problem_inputs, options=DistanceApproachOptions(enable_stitching_constraint=False)
    )
    g = np.asarray(with_rows.formulation.constraints(jnp.asarray(with_rows.starting_point())))
    cl = with_rows.constraint_layout
    np.testing.assert_allclose(g[cl.stitching_start : cl.obstacle_start], [-0.1, 0.2])
    assert without.num_constraints == with_rows.num_constraints - 2
