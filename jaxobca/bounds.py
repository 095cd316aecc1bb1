"""Variable bounds, constraint bounds and the starting point."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .index_layout import ConstraintLayout, IndexLayout
from .problem_data import ProblemData
from .problem_options import DistanceApproachOptions
from .types import BOUND_INFINITY, ControlIndex, HostArray, ObstacleRow, StateIndex


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ProblemBounds:
    """Lower/upper bounds on the decision vector (``x_l``, ``x_u``) and constraints (``g_l``, ``g_u``)."""

    x_l: HostArray
    x_u: HostArray
    g_l: HostArray
    g_u: HostArray

    def __post_init__(self) -> None:
        for arr in (self.x_l, self.x_u, self.g_l, self.g_u):
            arr.setflags(write=False)

    def contains(self, x: HostArray) -> bool:
        """Check ``x_l <= x <= x_u`` element-wise."""
        return bool(np.all(self.x_l <= x) and np.all(x <= self.x_u))


def build_variable_bounds(
    layout: IndexLayout, data: ProblemData, options: DistanceApproachOptions
) -> tuple[HostArray, HostArray]:
    """Build per-variable bounds.

    Interior states are limited by the map extent and the speed limits,
    heading is free. The first and last stage are pinned to ``x0`` and
    ``xf`` by collapsing both bounds onto the target value.
    """
    x_l = np.empty(layout.num_variables, dtype=np.float64)
    x_u = np.empty(layout.num_variables, dtype=np.float64)
    horizon = layout.horizon
    x_min, x_max, y_min, y_max = data.xy_bounds

    # 1. states
    states_l = x_l[layout.state_slice()].reshape(horizon + 1, layout.state_dim)
    states_u = x_u[layout.state_slice()].reshape(horizon + 1, layout.state_dim)
    states_l[:, StateIndex.X] = x_min
    states_u[:, StateIndex.X] = x_max
    states_l[:, StateIndex.Y] = y_min
    states_u[:, StateIndex.Y] = y_max
    states_l[:, StateIndex.PHI] = -BOUND_INFINITY
    states_u[:, StateIndex.PHI] = BOUND_INFINITY
    states_l[:, StateIndex.V] = -options.max_speed_reverse
    states_u[:, StateIndex.V] = options.max_speed_forward
    states_l[0] = data.x0
    states_u[0] = data.x0
    states_l[horizon] = data.xf
    states_u[horizon] = data.xf

    # 2. controls
    controls_l = x_l[layout.control_slice()].reshape(horizon, layout.control_dim)
    controls_u = x_u[layout.control_slice()].reshape(horizon, layout.control_dim)
    controls_l[:, ControlIndex.STEER] = -options.max_steer_angle
    controls_u[:, ControlIndex.STEER] = options.max_steer_angle
    controls_l[:, ControlIndex.A] = -options.max_acceleration_reverse
    controls_u[:, ControlIndex.A] = options.max_acceleration_forward

    # 3. time scaling
    time_lower, time_upper = options.time_scaling_bounds()
    x_l[layout.time_slice()] = time_lower
    x_u[layout.time_slice()] = time_upper

    # 4. dual multipliers
    x_l[layout.l_slice()] = 0.0
    x_u[layout.l_slice()] = options.max_lambda
    x_l[layout.n_slice()] = 0.0
    x_u[layout.n_slice()] = options.max_miu

    return x_l, x_u


def build_constraint_bounds(
    constraint_layout: ConstraintLayout, options: DistanceApproachOptions
) -> tuple[HostArray, HostArray]:
    """Build per-row constraint bounds."""
    m = constraint_layout.num_constraints
    g_l = np.zeros(m, dtype=np.float64)
    g_u = np.zeros(m, dtype=np.float64)

    # Dynamics and stitching rows stay at [0, 0]
    steer_rate = slice(constraint_layout.steer_rate_start, constraint_layout.stitching_start)
    g_l[steer_rate] = -options.max_steer_rate
    g_u[steer_rate] = options.max_steer_rate

    obstacle_rows = g_l[constraint_layout.obstacle_start :].reshape(-1, len(ObstacleRow))
    obstacle_rows_u = g_u[constraint_layout.obstacle_start :].reshape(-1, len(ObstacleRow))
    obstacle_rows[:, ObstacleRow.DUAL_NORM] = -BOUND_INFINITY
    obstacle_rows_u[:, ObstacleRow.DUAL_NORM] = 1.0
    obstacle_rows[:, ObstacleRow.SIGNED_DISTANCE] = options.min_safety_distance
    obstacle_rows_u[:, ObstacleRow.SIGNED_DISTANCE] = BOUND_INFINITY

    return g_l, g_u


def build_problem_bounds(
    layout: IndexLayout,
    constraint_layout: ConstraintLayout,
    data: ProblemData,
    options: DistanceApproachOptions,
) -> ProblemBounds:
    x_l, x_u = build_variable_bounds(layout, data, options)
    g_l, g_u = build_constraint_bounds(constraint_layout, options)
    return ProblemBounds(x_l=x_l, x_u=x_u, g_l=g_l, g_u=g_u)


def build_starting_point(
    layout: IndexLayout,
    data: ProblemData,
    options: DistanceApproachOptions,
    bounds: ProblemBounds,
) -> HostArray:
    """Inject the warm start into the decision vector.

    Time scaling starts at the warm-start values (1.0 when none are given)
    and is held at 1.0 in fixed-time mode. The result is clipped into the
    variable bounds, which also pins the first and last state.
    """
    x = np.empty(layout.num_variables, dtype=np.float64)
    x[layout.state_slice()] = data.x_ws.T.reshape(-1)
    x[layout.control_slice()] = data.u_ws.T.reshape(-1)

    if options.use_fix_time or data.time_ws is None:
        x[layout.time_slice()] = 1.0
    else:
        x[layout.time_slice()] = data.time_ws[: layout.time_vars]

    x[layout.l_slice()] = data.l_warm_up.T.reshape(-1)
    x[layout.n_slice()] = data.n_warm_up.T.reshape(-1)

    clipped = np.clip(x, bounds.x_l, bounds.x_u)
    num_clipped = int(np.count_nonzero(clipped != x))
    if num_clipped:
        logger.debug("Clipped %d warm-start entries into the variable bounds", num_clipped)
    return clipped
