"""Objective and constraint formulas of the distance-approach NLP.

The formulas are written once in ``jax.numpy``. Called on concrete arrays
they return plain values; traced by ``jax.grad``, ``jax.jacfwd`` or
``jax.hessian`` they yield exact derivatives.

Collision avoidance uses the strong-duality reformulation of
``dist(vehicle box, obstacle) >= d_min``: for every stage and obstacle there
exist ``l >= 0`` (one per obstacle edge) and ``n >= 0`` (one per box face)
with

    ||A^T l||^2 <= 1
    G^T n + R(phi)^T A^T l = 0
    -g^T n + (A t - b)^T l >= d_min

where ``t`` is the box centre and ``G p <= g`` the box in its own frame.
"""

from __future__ import annotations

import jax.numpy as jnp
import numpy as np
from jax import Array

from .exceptions import _raise_error
from .index_layout import ConstraintLayout, IndexLayout
from .problem_data import ProblemData
from .problem_options import DistanceApproachOptions
from .types import (
    CONTROL_DIM,
    MIU_DIM,
    STATE_DIM,
    ConstraintVector,
    ControlIndex,
    ControlTrajectory,
    DecisionVector,
    ErrorCode,
    StateIndex,
    StateTrajectory,
)
from .vehicle import VehicleGeometry


class DistanceApproachFormulation:
    """Pure objective/constraint evaluator keyed to a fixed layout."""

    def __init__(
        self,
        data: ProblemData,
        vehicle: VehicleGeometry,
        options: DistanceApproachOptions,
        layout: IndexLayout,
        constraint_layout: ConstraintLayout,
    ):
        if layout.state_dim != STATE_DIM or layout.control_dim != CONTROL_DIM:
            _raise_error(
                f"Kinematic model needs state_dim={STATE_DIM}, control_dim={CONTROL_DIM}",
                ErrorCode.DIMENSION_MISMATCH,
            )
        if layout.dual_stages != layout.horizon + 1 or layout.miu_dim != MIU_DIM:
            _raise_error(
                "Dual blocks must cover every stage with one dual-n entry per box face",
                ErrorCode.DIMENSION_MISMATCH,
            )

        self.layout = layout
        self.constraint_layout = constraint_layout

        self._ts = data.ts
        self._wheelbase = vehicle.wheelbase
        self._center_offset = vehicle.center_offset
        self._box_offsets = jnp.asarray(vehicle.box_offsets)

        # Reference and boundary data
        self._x_ref = jnp.asarray(data.x_ws.T)
        self._last_u = jnp.asarray(data.last_time_u)

        # Weights
        self._w_state = jnp.asarray(options.state_weights)
        self._w_input = jnp.asarray(options.input_weights)
        self._w_rate = jnp.asarray(options.rate_weights)
        self._w_stitching = jnp.asarray(options.stitching_weights)
        self._w_first_order_time = options.weight_first_order_time
        self._w_second_order_time = options.weight_second_order_time

        # Time variable governing each stage
        self._stage_time = jnp.asarray(
            np.minimum(np.arange(layout.horizon + 1), layout.time_vars - 1)
        )

        # Obstacles
        self._obstacles_a = jnp.asarray(data.obstacles_a)
        self._obstacles_b = jnp.asarray(data.obstacles_b)
        membership = np.zeros((layout.obstacle_count, layout.edges_sum))
        for j, (offset, count) in enumerate(zip(layout.edge_offsets, layout.edge_counts)):
            membership[j, offset : offset + count] = 1.0
        self._membership = jnp.asarray(membership)

    def unpack(
        self, x: DecisionVector
    ) -> tuple[StateTrajectory, ControlTrajectory, Array, Array, Array]:
        """Split the decision vector into states, controls, time scaling, dual-l and dual-n."""
        lay = self.layout
        states = x[lay.state_slice()].reshape(lay.horizon + 1, lay.state_dim)
        controls = x[lay.control_slice()].reshape(lay.horizon, lay.control_dim)
        time_scaling = x[lay.time_slice()]
        dual_l = x[lay.l_slice()].reshape(lay.dual_stages, lay.l_stage_size)
        dual_n = x[lay.n_slice()].reshape(lay.dual_stages, lay.obstacle_count, lay.miu_dim)
        return states, controls, time_scaling, dual_l, dual_n

    def stage_scaling(self, time_scaling: Array) -> Array:
        """Expand the time-scaling variables to one factor per stage."""
        return time_scaling[self._stage_time]

    # Objective

    def objective(self, x: DecisionVector) -> Array:
        """Weighted tracking, effort, rate, stitching and time-smoothness cost."""
        states, controls, time_scaling, _, _ = self.unpack(x)

        state_error = states - self._x_ref
        cost = jnp.sum((state_error**2) @ self._w_state)

        cost += jnp.sum((controls**2) @ self._w_input)

        rate = controls[1:] - controls[:-1]
        cost += jnp.sum((rate**2) @ self._w_rate)

        stitching = controls[0] - self._last_u
        cost += jnp.dot(stitching**2, self._w_stitching)

        if self.layout.time_vars > 1:
            first_order = time_scaling[1:] - time_scaling[:-1]
            cost += self._w_first_order_time * jnp.sum(first_order**2)
        if self.layout.time_vars > 2:
            second_order = time_scaling[2:] - 2.0 * time_scaling[1:-1] + time_scaling[:-2]
            cost += self._w_second_order_time * jnp.sum(second_order**2)

        return cost

    # Constraints

    def constraints(self, x: DecisionVector) -> ConstraintVector:
        """Stack dynamics, steering-rate, stitching and obstacle rows."""
        states, controls, time_scaling, dual_l, dual_n = self.unpack(x)
        dt = self._ts * self.stage_scaling(time_scaling)[:-1]

        blocks = [
            self.dynamics(states, controls, dt),
            self.steer_rate(controls, dt),
        ]
        if self.constraint_layout.stitching:
            blocks.append(controls[0] - self._last_u)
        if self.layout.obstacle_count:
            blocks.append(self.obstacle_constraints(states, dual_l, dual_n))
        return jnp.concatenate(blocks)

    def dynamics(self, states: StateTrajectory, controls: ControlTrajectory, dt: Array) -> Array:
        """Forward-Euler propagation residuals of the kinematic bicycle model."""
        current = states[:-1]
        phi = current[:, StateIndex.PHI]
        v = current[:, StateIndex.V]
        steer = controls[:, ControlIndex.STEER]
        a = controls[:, ControlIndex.A]

        derivative = jnp.stack(
            [
                v * jnp.cos(phi),
                v * jnp.sin(phi),
                v * jnp.tan(steer) / self._wheelbase,
                a,
            ],
            axis=1,
        )
        residual = states[1:] - current - dt[:, None] * derivative
        return residual.reshape(-1)

    def steer_rate(self, controls: ControlTrajectory, dt: Array) -> Array:
        """Steering rate per stage; the first stage is measured from the last executed steer."""
        steer = controls[:, ControlIndex.STEER]
        previous = jnp.concatenate([self._last_u[:1], steer[:-1]])
        return (steer - previous) / dt

    def obstacle_constraints(self, states: StateTrajectory, dual_l: Array, dual_n: Array) -> Array:
        """Dual norm, normal balance and signed distance rows per stage and obstacle."""
        phi = states[:, StateIndex.PHI]
        cos_phi = jnp.cos(phi)
        sin_phi = jnp.sin(phi)

        # A_j^T l_j for every stage and obstacle
        at_lambda = jnp.einsum(
            "je,sec->sjc", self._membership, dual_l[:, :, None] * self._obstacles_a[None, :, :]
        )
        ax = at_lambda[..., 0]
        ay = at_lambda[..., 1]

        dual_norm = ax**2 + ay**2

        c = cos_phi[:, None]
        s = sin_phi[:, None]
        balance_x = dual_n[..., 0] - dual_n[..., 2] + c * ax + s * ay
        balance_y = dual_n[..., 1] - dual_n[..., 3] - s * ax + c * ay

        center = jnp.stack(
            [
                states[:, StateIndex.X] + self._center_offset * cos_phi,
                states[:, StateIndex.Y] + self._center_offset * sin_phi,
            ],
            axis=1,
        )
        edge_slack = center @ self._obstacles_a.T - self._obstacles_b
        signed_distance = (
            jnp.einsum("je,se->sj", self._membership, dual_l * edge_slack)
            - dual_n @ self._box_offsets
        )

        rows = jnp.stack([dual_norm, balance_x, balance_y, signed_distance], axis=-1)
        return rows.reshape(-1)
