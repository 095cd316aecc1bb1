"""Problem sizes reported to the solver before any evaluation."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .index_layout import ConstraintLayout, IndexLayout
from .sparsity import SparsityPattern
from .types import CONTROL_DIM, MIU_DIM, STATE_DIM, IndexStyle


@dataclass(frozen=True)
class NLPInfo:
    """Sizes of one NLP instance."""

    n: int
    m: int
    nnz_jac_g: int
    nnz_h_lag: int
    index_style: IndexStyle = IndexStyle.C_STYLE


def build_layouts(
    horizon: int,
    edge_counts: Sequence[int],
    obstacle_count: int,
    time_scaling_per_stage: bool = True,
    stitching: bool = True,
) -> tuple[IndexLayout, ConstraintLayout]:
    """Build the variable and constraint layouts of the distance approach.

    The dual blocks cover every stage (``horizon + 1``) with one dual-n
    entry per vehicle box face.
    """
    layout = IndexLayout(
        horizon=horizon,
        state_dim=STATE_DIM,
        control_dim=CONTROL_DIM,
        time_vars=horizon + 1 if time_scaling_per_stage else 1,
        edge_counts=tuple(edge_counts),
        obstacle_count=obstacle_count,
        dual_stages=horizon + 1,
        miu_dim=MIU_DIM,
    )
    constraint_layout = ConstraintLayout(
        horizon=horizon,
        state_dim=STATE_DIM,
        control_dim=CONTROL_DIM,
        obstacle_count=obstacle_count,
        stitching=stitching,
    )
    return layout, constraint_layout


def compute_problem_sizes(
    horizon: int,
    edge_counts: Sequence[int],
    obstacle_count: int,
    time_scaling_per_stage: bool = True,
    stitching: bool = True,
) -> tuple[int, int]:
    """Get the closed-form variable and constraint counts ``(n, m)``."""
    layout, constraint_layout = build_layouts(
        horizon, edge_counts, obstacle_count, time_scaling_per_stage, stitching
    )
    return layout.num_variables, constraint_layout.num_constraints


def describe_problem(
    layout: IndexLayout,
    constraint_layout: ConstraintLayout,
    jacobian_pattern: SparsityPattern,
    hessian_pattern: SparsityPattern,
) -> NLPInfo:
    return NLPInfo(
        n=layout.num_variables,
        m=constraint_layout.num_constraints,
        nnz_jac_g=jacobian_pattern.nnz,
        nnz_h_lag=hessian_pattern.nnz,
        index_style=IndexStyle.C_STYLE,
    )
