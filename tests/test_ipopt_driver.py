"""
Tests for the IPOPT driver. Skipped when cyipopt is not installed.
"""

import numpy as np
import pytest

cyipopt = pytest.importorskip("cyipopt")

from jaxobca import ConfigurationError, SolveStatus, Verbosity  # noqa: E402
from jaxobca.ipopt_driver import (  # noqa: E402
    IpoptOptions,
    IpoptProblemAdapter,
    solve_distance_approach,
)


class TestIpoptOptions:
    def test_print_level_follows_verbosity(self):
        options = IpoptOptions()
        assert options.as_ipopt_options(Verbosity.SILENT)["print_level"] == 0
        assert options.as_ipopt_options(Verbosity.ITERATIONS)["print_level"] == 5
        assert IpoptOptions(print_level=2).as_ipopt_options(Verbosity.ITERATIONS)[
            "print_level"
        ] == 2

    def test_cpu_time_only_when_set(self):
        assert "max_cpu_time" not in IpoptOptions().as_ipopt_options()
        assert IpoptOptions(max_cpu_time=2.0).as_ipopt_options()["max_cpu_time"] == 2.0

    def test_invalid_values_rejected(self):
        with pytest.raises(ConfigurationError):
            IpoptOptions(max_iter=0)
        with pytest.raises(ConfigurationError):
            IpoptOptions(tol=-1.0)


class TestAdapter:
    def test_new_x_derived_from_iterates(self, declared_problem, perturb):
        adapter = IpoptProblemAdapter(declared_problem)
        x = declared_problem.starting_point()
        f = adapter.objective(x)
        # Same iterate: the cached objective is returned even for another array object
        assert adapter.objective(x.copy()) == f
        x_new = perturb(declared_problem, scale=0.2)
        assert adapter.objective(x_new) != f

    def test_rejected_point_raises_solver_evaluation_error(self, declared_problem):
        adapter = IpoptProblemAdapter(declared_problem)
        x = declared_problem.starting_point()
        x[declared_problem.layout.state_index(1, 0)] = np.inf
        with pytest.raises(cyipopt.CyIpoptEvaluationError):
            adapter.constraints(x)
        assert np.isfinite(adapter.objective(declared_problem.starting_point()))

    def test_intermediate_records_progress(self, declared_problem):
        adapter = IpoptProblemAdapter(declared_problem)
        keep_going = adapter.intermediate(0, 3, 1.5, 1e-3, 1e-4, 0.1, 0.0, 0.0, 1.0, 1.0, 1)
        assert keep_going
        assert adapter.stats.iterations == 3
        assert adapter.stats.primal_infeasibility == 1e-3

    def test_structure_callbacks(self, declared_problem):
        adapter = IpoptProblemAdapter(declared_problem)
        rows, cols = adapter.hessianstructure()
        assert np.all(rows >= cols)
        rows, _ = adapter.jacobianstructure()
        assert rows.size == declared_problem.describe_structure().nnz_jac_g


def test_solve_finalizes_problem(problem, problem_inputs):
    record, stats = solve_distance_approach(problem, IpoptOptions(max_iter=300))

    assert isinstance(record.status, SolveStatus)
    assert stats.status is record.status
    assert stats.solve_time > 0.0
    assert record is problem.solution

    # Pinned end states
    np.testing.assert_allclose(record.state_result[:, 0], problem_inputs["x0"], atol=1e-8)
    np.testing.assert_allclose(record.state_result[:, -1], problem_inputs["xf"], atol=1e-8)

    if record.is_success():
        cl = problem.constraint_layout
        dynamics = record.constraint_values[cl.dynamics_start : cl.steer_rate_start]
        np.testing.assert_allclose(dynamics, 0.0, atol=1e-5)
        np.testing.assert_array_less(
            problem.options.min_safety_distance - 1e-5,
            record.constraint_values[cl.obstacle_start + 3 :: 4],
        )
