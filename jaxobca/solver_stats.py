"""Solve statistics collected by the IPOPT driver."""

from __future__ import annotations

from dataclasses import dataclass

from .types import Float, SolveStatus


@dataclass
class SolveStats:
    """Performance statistics of one IPOPT solve.

    Tracks termination status, timing and the last reported iterate quality.
    """

    # Solver termination status
    status: SolveStatus | None = None

    # Timing information (in milliseconds)
    solve_time: Float = 0.0

    # Iteration counts
    iterations: int = 0

    # Convergence metrics
    objective_value: Float = 0.0
    primal_infeasibility: Float = 0.0
    dual_infeasibility: Float = 0.0
    barrier_parameter: Float = 0.0

    def reset(self) -> None:
        """Reset all statistics to initial values."""
        self.status = None
        self.solve_time = 0.0
        self.iterations = 0
        self.objective_value = 0.0
        self.primal_infeasibility = 0.0
        self.dual_infeasibility = 0.0
        self.barrier_parameter = 0.0

    def record_iteration(
        self,
        iter_count: int,
        obj_value: Float,
        inf_pr: Float,
        inf_du: Float,
        mu: Float,
    ) -> None:
        self.iterations = iter_count
        self.objective_value = obj_value
        self.primal_infeasibility = inf_pr
        self.dual_infeasibility = inf_du
        self.barrier_parameter = mu

    def is_converged(self) -> bool:
        """Check if solver has converged successfully."""
        return self.status is not None and self.status.is_success()
