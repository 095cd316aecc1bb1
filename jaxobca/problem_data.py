"""Validated construction inputs of a distance-approach problem.

Every shape is checked against the horizon and the obstacle layout here, so
an inconsistent problem never reaches the layout, the bounds or the tape.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike

from .exceptions import _raise_error
from .types import CONTROL_DIM, MIU_DIM, STATE_DIM, ErrorCode, Float


def _as_matrix(value: ArrayLike, shape: tuple[int, int], name: str) -> np.ndarray:
    arr = np.array(value, dtype=np.float64)
    if arr.shape != shape:
        if arr.size == 0 and shape[0] * shape[1] == 0:
            arr = np.zeros(shape, dtype=np.float64)
        # Row or column vectors are accepted for single-row/column matrices
        elif arr.ndim == 1 and 1 in shape and arr.size == shape[0] * shape[1]:
            arr = arr.reshape(shape)
        else:
            _raise_error(
                f"{name} must have shape {shape}, got {arr.shape}", ErrorCode.DIMENSION_MISMATCH
            )
    return arr


def _as_vector(value: ArrayLike, size: int, name: str) -> np.ndarray:
    arr = np.array(value, dtype=np.float64)
    if arr.size != size or (arr.ndim > 1 and max(arr.shape) != size):
        _raise_error(
            f"{name} must have {size} entries, got shape {arr.shape}",
            ErrorCode.DIMENSION_MISMATCH,
        )
    return arr.reshape(size)


@dataclass(frozen=True)
class ProblemData:
    """Horizon, warm start, boundary conditions and obstacles of one problem.

    Matrices follow the column-per-stage convention: ``x_ws`` is
    ``(4, horizon + 1)``, ``u_ws`` is ``(2, horizon)``, ``l_warm_up`` is
    ``(sum(edges), horizon + 1)`` and ``n_warm_up`` is
    ``(4 * obstacles_num, horizon + 1)``. Obstacles are stacked row-wise in
    ``obstacles_a`` (``(sum(edges), 2)``) and ``obstacles_b``.
    """

    horizon: int
    ts: Float
    x_ws: np.ndarray
    u_ws: np.ndarray
    l_warm_up: np.ndarray
    n_warm_up: np.ndarray
    x0: np.ndarray
    xf: np.ndarray
    last_time_u: np.ndarray
    xy_bounds: np.ndarray
    obstacles_edges_num: tuple[int, ...]
    obstacles_num: int
    obstacles_a: np.ndarray
    obstacles_b: np.ndarray
    time_ws: np.ndarray | None = None

    @classmethod
    def from_arrays(
        cls,
        horizon: int,
        ts: Float,
        x_ws: ArrayLike,
        u_ws: ArrayLike,
        l_warm_up: ArrayLike,
        n_warm_up: ArrayLike,
        x0: ArrayLike,
        xf: ArrayLike,
        last_time_u: ArrayLike,
        xy_bounds: ArrayLike,
        obstacles_edges_num: ArrayLike,
        obstacles_num: int,
        obstacles_a: ArrayLike,
        obstacles_b: ArrayLike,
        time_ws: ArrayLike | None = None,
    ) -> ProblemData:
        """Validate and normalize raw construction inputs.

        Raises:
            ConfigurationError: on a non-positive horizon or timestep, an
                obstacle count that disagrees with the edge counts, or
                inverted XY bounds.
            DimensionError: on any array whose shape disagrees with the
                horizon or the obstacle layout.
        """
        if isinstance(horizon, bool) or int(horizon) != horizon or horizon <= 0:
            _raise_error(
                f"Horizon must be a positive integer, got {horizon}",
                ErrorCode.NON_POSITIVE_HORIZON,
            )
        horizon = int(horizon)
        if not ts > 0.0:
            _raise_error(f"Timestep must be positive, got {ts}", ErrorCode.TIMESTEP_NOT_POSITIVE)

        edges = np.array(obstacles_edges_num).reshape(-1)
        if int(obstacles_num) != edges.size:
            _raise_error(
                f"obstacles_num={obstacles_num} disagrees with {edges.size} edge counts",
                ErrorCode.OBSTACLE_COUNT_MISMATCH,
            )
        if np.any(edges != np.round(edges)) or np.any(edges <= 0):
            _raise_error(
                f"Edge counts must be positive integers, got {edges.tolist()}",
                ErrorCode.DIMENSION_MISMATCH,
            )
        edges_tuple = tuple(int(e) for e in edges)
        edges_sum = sum(edges_tuple)
        stages = horizon + 1

        bounds = _as_vector(xy_bounds, 4, "xy_bounds")
        if bounds[0] >= bounds[1] or bounds[2] >= bounds[3]:
            _raise_error(
                f"xy_bounds must be [x_min, x_max, y_min, y_max] with min < max, "
                f"got {bounds.tolist()}",
                ErrorCode.INVALID_BOUND,
            )

        time_arr = None
        if time_ws is not None:
            time_arr = _as_vector(time_ws, stages, "time_ws")

        obstacles_b_arr = (
            _as_vector(obstacles_b, edges_sum, "obstacles_b")
            if edges_sum
            else np.zeros(0, dtype=np.float64)
        )

        return cls(
            horizon=horizon,
            ts=float(ts),
            x_ws=_as_matrix(x_ws, (STATE_DIM, stages), "x_ws"),
            u_ws=_as_matrix(u_ws, (CONTROL_DIM, horizon), "u_ws"),
            l_warm_up=_as_matrix(l_warm_up, (edges_sum, stages), "l_warm_up"),
            n_warm_up=_as_matrix(n_warm_up, (MIU_DIM * len(edges_tuple), stages), "n_warm_up"),
            x0=_as_vector(x0, STATE_DIM, "x0"),
            xf=_as_vector(xf, STATE_DIM, "xf"),
            last_time_u=_as_vector(last_time_u, CONTROL_DIM, "last_time_u"),
            xy_bounds=bounds,
            obstacles_edges_num=edges_tuple,
            obstacles_num=len(edges_tuple),
            obstacles_a=_as_matrix(obstacles_a, (edges_sum, 2), "obstacles_a"),
            obstacles_b=obstacles_b_arr,
            time_ws=time_arr,
        )

    @property
    def edges_sum(self) -> int:
        return sum(self.obstacles_edges_num)
