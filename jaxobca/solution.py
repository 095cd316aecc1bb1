"""Final iterate reshaped into trajectories."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike

from .exceptions import _raise_error
from .index_layout import IndexLayout
from .types import ErrorCode, Float, HostArray, SolveStatus


@dataclass(frozen=True, eq=False)
class SolutionRecord:
    """Immutable result of one solve.

    Arrays use the column-per-stage convention of the construction inputs:
    ``state_result`` is ``(4, N+1)``, ``control_result`` ``(2, N)``,
    ``time_result`` ``(1, N+1)`` (time scaling per stage),
    ``dual_l_result`` ``(sum(edges), N+1)`` and ``dual_n_result``
    ``(4 * obstacles, N+1)``.
    """

    status: SolveStatus
    state_result: HostArray
    control_result: HostArray
    time_result: HostArray
    dual_l_result: HostArray
    dual_n_result: HostArray
    objective_value: Float
    constraint_values: HostArray | None = None
    constraint_multipliers: HostArray | None = None
    bound_multipliers_lower: HostArray | None = None
    bound_multipliers_upper: HostArray | None = None
    # Raw solver return code, kept when it has no SolveStatus member
    return_code: int | None = None

    def __post_init__(self) -> None:
        for arr in (
            self.state_result,
            self.control_result,
            self.time_result,
            self.dual_l_result,
            self.dual_n_result,
            self.constraint_values,
            self.constraint_multipliers,
            self.bound_multipliers_lower,
            self.bound_multipliers_upper,
        ):
            if arr is not None:
                arr.setflags(write=False)

    def is_success(self) -> bool:
        return self.status.is_success()

    def as_tuple(self) -> tuple[HostArray, HostArray, HostArray, HostArray, HostArray]:
        """Get ``(state, control, time, dual_l, dual_n)`` results."""
        return (
            self.state_result,
            self.control_result,
            self.time_result,
            self.dual_l_result,
            self.dual_n_result,
        )


def _optional_copy(values: ArrayLike | None, size: int, name: str) -> HostArray | None:
    if values is None:
        return None
    arr = np.array(values, dtype=np.float64).reshape(-1)
    if arr.size != size:
        _raise_error(f"{name} must have {size} entries, got {arr.size}", ErrorCode.DIMENSION_MISMATCH)
    return arr


def extract_solution(
    layout: IndexLayout,
    status: SolveStatus,
    x: ArrayLike,
    obj_value: Float,
    num_constraints: int,
    z_l: ArrayLike | None = None,
    z_u: ArrayLike | None = None,
    g: ArrayLike | None = None,
    lagrange: ArrayLike | None = None,
    x0: ArrayLike | None = None,
    xf: ArrayLike | None = None,
    return_code: int | None = None,
) -> SolutionRecord:
    """Reshape the final iterate according to ``layout``, for any termination status.

    When given, ``x0`` and ``xf`` overwrite the first and last state columns
    so the pinned stages hold the start and end states exactly, whatever
    iterate the solver returned.
    """
    x_arr = np.array(x, dtype=np.float64).reshape(-1)
    if x_arr.size != layout.num_variables:
        _raise_error(
            f"Final iterate must have {layout.num_variables} entries, got {x_arr.size}",
            ErrorCode.DIMENSION_MISMATCH,
        )

    horizon = layout.horizon
    states = x_arr[layout.state_slice()].reshape(horizon + 1, layout.state_dim).T.copy()
    for stage, pinned in ((0, x0), (horizon, xf)):
        if pinned is not None:
            states[:, stage] = np.asarray(pinned, dtype=np.float64).reshape(layout.state_dim)
    controls = x_arr[layout.control_slice()].reshape(horizon, layout.control_dim).T
    stage_time = np.minimum(np.arange(horizon + 1), layout.time_vars - 1)
    time_scaling = x_arr[layout.time_slice()][stage_time].reshape(1, horizon + 1)
    dual_l = x_arr[layout.l_slice()].reshape(layout.dual_stages, layout.l_stage_size).T
    dual_n = x_arr[layout.n_slice()].reshape(layout.dual_stages, layout.n_stage_size).T

    return SolutionRecord(
        status=status,
        state_result=np.ascontiguousarray(states),
        control_result=np.ascontiguousarray(controls),
        time_result=np.ascontiguousarray(time_scaling),
        dual_l_result=np.ascontiguousarray(dual_l),
        dual_n_result=np.ascontiguousarray(dual_n),
        objective_value=float(obj_value),
        constraint_values=_optional_copy(g, num_constraints, "g"),
        constraint_multipliers=_optional_copy(lagrange, num_constraints, "lagrange"),
        bound_multipliers_lower=_optional_copy(z_l, layout.num_variables, "z_l"),
        bound_multipliers_upper=_optional_copy(z_u, layout.num_variables, "z_u"),
        return_code=return_code,
    )
