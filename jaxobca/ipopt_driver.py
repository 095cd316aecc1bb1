"""IPOPT driver for the distance-approach problem.

``IpoptProblemAdapter`` exposes a DistanceApproachProblem through the
callback names of ``cyipopt.Problem``; ``solve_distance_approach`` runs one
solve from the warm start and finalizes the problem with IPOPT's status.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import cyipopt
import numpy as np

from .exceptions import EvaluationError, _raise_error
from .problem import DistanceApproachProblem
from .solution import SolutionRecord
from .solver_stats import SolveStats
from .types import ErrorCode, Float, HostArray, Verbosity


logger = logging.getLogger(__name__)

_PRINT_LEVELS = {
    Verbosity.SILENT: 0,
    Verbosity.SUMMARY: 3,
    Verbosity.ITERATIONS: 5,
}


@dataclass(frozen=True)
class IpoptOptions:
    # Output; None derives the level from the problem verbosity
    print_level: int | None = None

    # Termination
    max_iter: int = 1000
    tol: Float = 1e-4
    acceptable_tol: Float = 1e-1
    acceptable_constr_viol_tol: Float = 1e-1
    acceptable_iter: int = 15
    max_cpu_time: Float | None = None

    # Linear solver
    linear_solver: str = "mumps"
    mumps_mem_percent: int = 6000
    mumps_pivtol: Float = 1e-6

    # Barrier and step options
    mu_init: Float = 0.1
    min_hessian_perturbation: Float = 1e-12
    jacobian_regularization_value: Float = 1e-7
    alpha_for_y: str = "min"
    recalc_y: str = "yes"

    def __post_init__(self) -> None:
        """Validate option values after initialization."""
        if self.max_iter <= 0:
            _raise_error("max_iter must be positive", ErrorCode.INVALID_OPTION)
        if self.tol <= 0 or self.acceptable_tol <= 0:
            _raise_error("tolerances must be positive", ErrorCode.INVALID_OPTION)
        if self.mu_init <= 0:
            _raise_error("mu_init must be positive", ErrorCode.INVALID_OPTION)
        if self.max_cpu_time is not None and self.max_cpu_time <= 0:
            _raise_error("max_cpu_time must be positive", ErrorCode.INVALID_OPTION)
        if self.print_level is not None and not 0 <= self.print_level <= 12:
            _raise_error("print_level must be within [0, 12]", ErrorCode.INVALID_OPTION)

    def as_ipopt_options(self, verbose: Verbosity = Verbosity.SILENT) -> dict[str, Any]:
        """Get the option dictionary passed to ``cyipopt.Problem.add_option``."""
        print_level = self.print_level if self.print_level is not None else _PRINT_LEVELS[verbose]
        options: dict[str, Any] = {
            "print_level": int(print_level),
            "sb": "yes",
            "max_iter": int(self.max_iter),
            "tol": float(self.tol),
            "acceptable_tol": float(self.acceptable_tol),
            "acceptable_constr_viol_tol": float(self.acceptable_constr_viol_tol),
            "acceptable_iter": int(self.acceptable_iter),
            "linear_solver": self.linear_solver,
            "mu_init": float(self.mu_init),
            "min_hessian_perturbation": float(self.min_hessian_perturbation),
            "jacobian_regularization_value": float(self.jacobian_regularization_value),
            "alpha_for_y": self.alpha_for_y,
            "recalc_y": self.recalc_y,
        }
        if self.linear_solver == "mumps":
            options["mumps_mem_percent"] = int(self.mumps_mem_percent)
            options["mumps_pivtol"] = float(self.mumps_pivtol)
        if self.max_cpu_time is not None:
            options["max_cpu_time"] = float(self.max_cpu_time)
        return options


@contextmanager
def _evaluation_guard(callback: str) -> Iterator[None]:
    try:
        yield
    except EvaluationError as e:
        logger.debug("Rejected point in %s: %s", callback, e)
        raise cyipopt.CyIpoptEvaluationError(str(e)) from e


class IpoptProblemAdapter:
    """cyipopt problem object over a DistanceApproachProblem.

    cyipopt does not forward IPOPT's ``new_x`` flag, so it is recovered by
    comparing each iterate with the previous one.
    """

    def __init__(self, problem: DistanceApproachProblem, verbose: Verbosity = Verbosity.SILENT):
        self.problem = problem
        self.verbose = verbose
        self.stats = SolveStats()
        self._last_x: HostArray | None = None

    def _is_new_point(self, x: HostArray) -> bool:
        if self._last_x is not None and np.array_equal(self._last_x, x):
            return False
        self._last_x = np.array(x, dtype=np.float64, copy=True)
        return True

    # ---- IPOPT callbacks ----
    def objective(self, x: HostArray) -> Float:
        with _evaluation_guard("objective"):
            return self.problem.objective(x, new_x=self._is_new_point(x))

    def gradient(self, x: HostArray) -> HostArray:
        with _evaluation_guard("gradient"):
            return self.problem.gradient(x, new_x=self._is_new_point(x))

    def constraints(self, x: HostArray) -> HostArray:
        with _evaluation_guard("constraints"):
            return self.problem.constraints(x, new_x=self._is_new_point(x))

    def jacobian(self, x: HostArray) -> HostArray:
        with _evaluation_guard("jacobian"):
            return self.problem.jacobian(x, new_x=self._is_new_point(x))

    def jacobianstructure(self) -> tuple[HostArray, HostArray]:
        return self.problem.jacobian_structure()

    def hessian(self, x: HostArray, lagrange: HostArray, obj_factor: Float) -> HostArray:
        with _evaluation_guard("hessian"):
            return self.problem.hessian(x, obj_factor, lagrange, new_x=self._is_new_point(x))

    def hessianstructure(self) -> tuple[HostArray, HostArray]:
        return self.problem.hessian_structure()

    def intermediate(
        self,
        alg_mod: int,
        iter_count: int,
        obj_value: Float,
        inf_pr: Float,
        inf_du: Float,
        mu: Float,
        d_norm: Float,
        regularization_size: Float,
        alpha_pr: Float,
        alpha_du: Float,
        ls_trials: int,
    ) -> bool:
        self.stats.record_iteration(iter_count, obj_value, inf_pr, inf_du, mu)
        if self.verbose is Verbosity.ITERATIONS:
            logger.info(
                "iter = %3d, obj = %10.4g, inf_pr = %8.3e, inf_du = %8.3e, mu = %7.2g, "
                "alpha_pr = %8.3g, ls_trials = %2d",
                iter_count,
                obj_value,
                inf_pr,
                inf_du,
                mu,
                alpha_pr,
                ls_trials,
            )
        return True


def solve_distance_approach(
    problem: DistanceApproachProblem, ipopt_options: IpoptOptions | None = None
) -> tuple[SolutionRecord, SolveStats]:
    """Solve ``problem`` with IPOPT and finalize it with the reported status.

    Non-optimal terminations still produce a SolutionRecord holding the last
    iterate; inspect ``record.status`` to tell them apart.
    """
    opts = ipopt_options if ipopt_options is not None else IpoptOptions()
    verbose = problem.options.verbose

    info = problem.describe_structure()
    bounds = problem.bounds()
    adapter = IpoptProblemAdapter(problem, verbose=verbose)

    nlp = cyipopt.Problem(
        n=info.n,
        m=info.m,
        problem_obj=adapter,
        lb=bounds.x_l,
        ub=bounds.x_u,
        cl=bounds.g_l,
        cu=bounds.g_u,
    )
    for key, value in opts.as_ipopt_options(verbose).items():
        nlp.add_option(key, value)

    if verbose is not Verbosity.SILENT:
        logger.info(
            "Starting IPOPT solve: n=%d, m=%d, nnz_jac=%d, nnz_hess=%d",
            info.n,
            info.m,
            info.nnz_jac_g,
            info.nnz_h_lag,
        )

    start_time = time.perf_counter()
    x_opt, result = nlp.solve(problem.starting_point())
    adapter.stats.solve_time = (time.perf_counter() - start_time) * 1000  # Convert to milliseconds

    record = problem.finalize(
        int(result["status"]),
        x_opt,
        result["obj_val"],
        z_l=result["mult_x_L"],
        z_u=result["mult_x_U"],
        g=result["g"],
        lagrange=result["mult_g"],
    )
    status = record.status
    adapter.stats.status = status
    adapter.stats.objective_value = record.objective_value

    if verbose is not Verbosity.SILENT:
        logger.info(
            "IPOPT finished with %s after %d iterations (%.1f ms), objective %g",
            status.name,
            adapter.stats.iterations,
            adapter.stats.solve_time,
            record.objective_value,
        )
    return record, adapter.stats
