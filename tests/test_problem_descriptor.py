"""
Tests for problem sizes reported before evaluation.
"""

import pytest

from jaxobca import IndexStyle, build_layouts, compute_problem_sizes


def expected_sizes(horizon, edges, time_per_stage=True, stitching=True):
    obstacles = len(edges)
    stages = horizon + 1
    time_vars = stages if time_per_stage else 1
    n = 4 * stages + 2 * horizon + time_vars + stages * (sum(edges) + 4 * obstacles)
    m = 4 * horizon + horizon + (2 if stitching else 0) + 4 * obstacles * stages
    return n, m


@pytest.mark.parametrize(
    "horizon, edges",
    [
        (1, []),
        (5, [4]),
        (20, [4, 4]),
        (40, [3, 5, 4]),
    ],
)
def test_closed_form_sizes(horizon, edges):
    assert compute_problem_sizes(horizon, edges, len(edges)) == expected_sizes(horizon, edges)


def test_single_time_scaling_variable():
    n, m = compute_problem_sizes(10, [4], 1, time_scaling_per_stage=False)
    assert (n, m) == expected_sizes(10, [4], time_per_stage=False)


def test_without_stitching_rows():
    _, m = compute_problem_sizes(10, [4], 1, stitching=False)
    assert m == expected_sizes(10, [4], stitching=False)[1]


def test_layouts_agree_on_horizon():
    layout, constraint_layout = build_layouts(8, [4, 4], 2)
    assert layout.dual_stages == 9
    assert layout.miu_dim == 4
    assert constraint_layout.horizon == layout.horizon == 8


def test_describe_structure_reports_sizes(declared_problem):
    info = declared_problem.describe_structure()
    n, m = expected_sizes(5, [4])
    assert (info.n, info.m) == (n, m)
    assert info.index_style is IndexStyle.C_STYLE
    rows, _ = declared_problem.jacobian_structure()
    hess_rows, _ = declared_problem.hessian_structure()
    assert info.nnz_jac_g == rows.size
    assert info.nnz_h_lag == hess_rows.size
