"""Solver-facing distance-approach problem.

This module provides the DistanceApproachProblem class: a thin adapter that
answers the callback sequence of a generic NLP solver on top of the layout,
formulation, bounds and derivative engine.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import ArrayLike

from .bounds import ProblemBounds, build_problem_bounds, build_starting_point
from .derivative_engine import DerivativeEngine
from .exceptions import _raise_error
from .formulation import DistanceApproachFormulation
from .problem_data import ProblemData
from .problem_descriptor import NLPInfo, build_layouts, describe_problem
from .problem_options import DistanceApproachOptions
from .solution import SolutionRecord, extract_solution
from .sparsity import SparsityPattern, build_hessian_pattern, build_jacobian_pattern
from .types import ErrorCode, Float, HostArray, ProblemState, SolveStatus
from .vehicle import VehicleGeometry


logger = logging.getLogger(__name__)


@dataclass
class _PointCache:
    """Values computed at the current evaluation point."""

    x: HostArray | None = None
    values: dict[str, Any] = field(default_factory=dict)

    def reset(self, x: HostArray) -> None:
        self.x = x
        self.values.clear()


class DistanceApproachProblem:
    """NLP adapter for distance-approach trajectory optimization.

    Lifecycle: ``UNINITIALIZED -> STRUCTURE_DECLARED -> EVALUATING* ->
    FINALIZED``. The first structural query (``describe_structure`` or a
    structure-only Jacobian/Hessian call) builds the sparsity patterns and
    records the derivative tapes. Value queries require the structure and
    no call is valid after ``finalize``.
    """

    def __init__(
        self,
        horizon: int,
        ts: Float,
        ego: ArrayLike,
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
        wheelbase: Float,
        options: DistanceApproachOptions | None = None,
        time_ws: ArrayLike | None = None,
    ):
        """Validate inputs and lay out the NLP.

        Args:
            horizon: Number of stages
            ts: Nominal stage duration
            ego: Footprint ``[front, right, back, left]`` edge distances
            x_ws: Warm-start states, ``(4, horizon + 1)``
            u_ws: Warm-start controls, ``(2, horizon)``
            l_warm_up: Warm-start dual-l, ``(sum(edges), horizon + 1)``
            n_warm_up: Warm-start dual-n, ``(4 * obstacles_num, horizon + 1)``
            x0: Start state
            xf: End state
            last_time_u: Last executed control
            xy_bounds: Map extent ``[x_min, x_max, y_min, y_max]``
            obstacles_edges_num: Edge count per obstacle
            obstacles_num: Number of obstacles
            obstacles_a: Stacked half-space normals, ``(sum(edges), 2)``
            obstacles_b: Stacked half-space offsets, ``(sum(edges),)``
            wheelbase: Vehicle wheelbase
            options: Weights and limits
            time_ws: Optional warm-start time scaling, ``(horizon + 1,)``

        Raises:
            ConfigurationError: on invalid sizes, bounds or options
            DimensionError: on arrays inconsistent with horizon/obstacles
        """
        self.options = options if options is not None else DistanceApproachOptions()
        self.data = ProblemData.from_arrays(
            horizon=horizon,
            ts=ts,
            x_ws=x_ws,
            u_ws=u_ws,
            l_warm_up=l_warm_up,
            n_warm_up=n_warm_up,
            x0=x0,
            xf=xf,
            last_time_u=last_time_u,
            xy_bounds=xy_bounds,
            obstacles_edges_num=obstacles_edges_num,
            obstacles_num=obstacles_num,
            obstacles_a=obstacles_a,
            obstacles_b=obstacles_b,
            time_ws=time_ws,
        )
        self.vehicle = VehicleGeometry.from_ego(ego, wheelbase)

        self.layout, self.constraint_layout = build_layouts(
            self.data.horizon,
            self.data.obstacles_edges_num,
            self.data.obstacles_num,
            time_scaling_per_stage=self.options.time_scaling_per_stage,
            stitching=self.options.enable_stitching_constraint,
        )
        self.formulation = DistanceApproachFormulation(
            self.data, self.vehicle, self.options, self.layout, self.constraint_layout
        )
        self.engine = DerivativeEngine(
            self.formulation.objective,
            self.formulation.constraints,
            self.layout.num_variables,
            self.constraint_layout.num_constraints,
        )

        self._bounds = build_problem_bounds(
            self.layout, self.constraint_layout, self.data, self.options
        )
        self._starting_point = build_starting_point(
            self.layout, self.data, self.options, self._bounds
        )
        self._starting_point.setflags(write=False)

        self._jacobian_pattern: SparsityPattern | None = None
        self._hessian_pattern: SparsityPattern | None = None
        self._cache = _PointCache()
        self._solution: SolutionRecord | None = None
        self.state = ProblemState.UNINITIALIZED

        logger.debug(
            "Distance approach problem: horizon=%d, obstacles=%d, n=%d, m=%d",
            self.data.horizon,
            self.data.obstacles_num,
            self.num_variables,
            self.num_constraints,
        )

    @property
    def num_variables(self) -> int:
        return self.layout.num_variables

    @property
    def num_constraints(self) -> int:
        return self.constraint_layout.num_constraints

    # Structure

    def describe_structure(self) -> NLPInfo:
        """Report sizes and nonzero counts, recording the tapes on first call."""
        self._declare_structure()
        assert self._jacobian_pattern is not None and self._hessian_pattern is not None
        return describe_problem(
            self.layout, self.constraint_layout, self._jacobian_pattern, self._hessian_pattern
        )

    def jacobian_structure(self) -> tuple[HostArray, HostArray]:
        """Get the (rows, cols) of the constraint Jacobian nonzeros."""
        self._declare_structure()
        assert self._jacobian_pattern is not None
        return self._jacobian_pattern.rows, self._jacobian_pattern.cols

    def hessian_structure(self) -> tuple[HostArray, HostArray]:
        """Get the lower-triangle (rows, cols) of the Lagrangian Hessian nonzeros."""
        self._declare_structure()
        assert self._hessian_pattern is not None
        return self._hessian_pattern.rows, self._hessian_pattern.cols

    def _declare_structure(self) -> None:
        self._assert_not_finalized()
        if self.state is not ProblemState.UNINITIALIZED:
            return

        jacobian_pattern = build_jacobian_pattern(self.layout, self.constraint_layout)
        hessian_pattern = build_hessian_pattern(self.layout, self.constraint_layout)
        self.engine.generate_tapes(self._starting_point, jacobian_pattern, hessian_pattern)

        self._jacobian_pattern = jacobian_pattern
        self._hessian_pattern = hessian_pattern
        self.state = ProblemState.STRUCTURE_DECLARED

    # Bounds and starting point

    def bounds(self) -> ProblemBounds:
        self._assert_not_finalized()
        return self._bounds

    def starting_point(self) -> HostArray:
        """Get the warm-start iterate; it lies within ``bounds()`` for every index."""
        self._assert_not_finalized()
        return self._starting_point.copy()

    # Values

    def objective(self, x: ArrayLike, new_x: bool = True) -> Float:
        return self._cached("objective", x, new_x, lambda p: self.engine.objective(p))

    def gradient(self, x: ArrayLike, new_x: bool = True) -> HostArray:
        return self._cached("gradient", x, new_x, lambda p: self.engine.gradient(p)).copy()

    def constraints(self, x: ArrayLike, new_x: bool = True) -> HostArray:
        return self._cached("constraints", x, new_x, lambda p: self.engine.constraints(p)).copy()

    def jacobian(self, x: ArrayLike, new_x: bool = True) -> HostArray:
        """Jacobian values ordered like ``jacobian_structure()``."""
        return self._cached(
            "jacobian", x, new_x, lambda p: self.engine.jacobian_values(p)
        ).copy()

    def hessian(
        self,
        x: ArrayLike,
        obj_factor: Float,
        lagrange: ArrayLike,
        new_x: bool = True,
    ) -> HostArray:
        """Lagrangian Hessian values ordered like ``hessian_structure()``.

        Depends on the multipliers, so the value is never cached.
        """
        point = self._enter_evaluation(x, new_x)
        return self.engine.hessian_values(point, obj_factor, lagrange)

    def _cached(
        self, key: str, x: ArrayLike, new_x: bool, compute: Callable[[HostArray], Any]
    ) -> Any:
        point = self._enter_evaluation(x, new_x)
        if key not in self._cache.values:
            self._cache.values[key] = compute(point)
        return self._cache.values[key]

    def _enter_evaluation(self, x: ArrayLike, new_x: bool) -> HostArray:
        self._assert_not_finalized()
        if self.state is ProblemState.UNINITIALIZED:
            _raise_error(
                "Structure must be declared before evaluation", ErrorCode.STRUCTURE_NOT_DECLARED
            )
        self.state = ProblemState.EVALUATING

        if new_x or self._cache.x is None:
            point = np.array(x, dtype=np.float64).reshape(-1)
            if point.size != self.num_variables:
                _raise_error(
                    f"Expected {self.num_variables} decision variables, got {point.size}",
                    ErrorCode.DIMENSION_MISMATCH,
                )
            point.setflags(write=False)
            self._cache.reset(point)
        return self._cache.x

    # Finalization

    def finalize(
        self,
        status: SolveStatus | int,
        x: ArrayLike,
        obj_value: Float,
        z_l: ArrayLike | None = None,
        z_u: ArrayLike | None = None,
        g: ArrayLike | None = None,
        lagrange: ArrayLike | None = None,
    ) -> SolutionRecord:
        """Store the final iterate as a SolutionRecord, whatever the status.

        The first and last state stages of the record are set to ``x0`` and
        ``xf``. Return codes unknown to SolveStatus are recorded as
        ``INTERNAL_ERROR`` with the raw code in ``record.return_code``.
        """
        self._assert_not_finalized()
        if isinstance(status, SolveStatus):
            solve_status, return_code = status, status.value
        else:
            return_code = int(status)
            solve_status = SolveStatus.from_code(return_code)
            if solve_status.value != return_code:
                logger.warning(
                    "Unknown solver return code %d recorded as %s", return_code, solve_status.name
                )

        record = extract_solution(
            self.layout,
            solve_status,
            x,
            obj_value,
            self.num_constraints,
            z_l=z_l,
            z_u=z_u,
            g=g,
            lagrange=lagrange,
            x0=self.data.x0,
            xf=self.data.xf,
            return_code=return_code,
        )
        self._solution = record
        self._cache = _PointCache()
        self.state = ProblemState.FINALIZED
        logger.debug("Finalized with status %s, objective %g", solve_status.name, obj_value)
        return record

    @property
    def solution(self) -> SolutionRecord:
        if self._solution is None:
            _raise_error(
                "Results are only available after finalize()", ErrorCode.SOLUTION_NOT_AVAILABLE
            )
        return self._solution

    def get_optimization_results(
        self,
    ) -> tuple[HostArray, HostArray, HostArray, HostArray, HostArray]:
        """Get ``(state, control, time, dual_l, dual_n)`` of the finalized solve."""
        return self.solution.as_tuple()

    def _assert_not_finalized(self) -> None:
        if self.state is ProblemState.FINALIZED:
            _raise_error("Problem already finalized", ErrorCode.ALREADY_FINALIZED)
