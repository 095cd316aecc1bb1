"""Jacobian and Hessian sparsity patterns of the distance-approach NLP.

Patterns are enumerated from the layout alone. A Jacobian row holds every
variable its constraint reads. The Hessian of the Lagrangian holds, for each
objective term and constraint row, the lower triangle of the clique of
variables that enter it nonlinearly; positions whose second derivative
happens to vanish at a given point are kept and report 0.0.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import numpy as np

from .index_layout import ConstraintLayout, IndexLayout
from .types import MIU_DIM, ControlIndex, HostArray, ObstacleRow, StateIndex


@dataclass(frozen=True, eq=False)
class SparsityPattern:
    """Ordered (row, col) nonzero positions."""

    rows: HostArray
    cols: HostArray

    def __post_init__(self) -> None:
        if self.rows.shape != self.cols.shape:
            raise ValueError("rows and cols must have the same length")
        self.rows.setflags(write=False)
        self.cols.setflags(write=False)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[int, int]]) -> SparsityPattern:
        """Build a pattern from (row, col) pairs, dropping duplicates and sorting row-major."""
        ordered = sorted(set(pairs))
        rows = np.array([r for r, _ in ordered], dtype=np.int64)
        cols = np.array([c for _, c in ordered], dtype=np.int64)
        return cls(rows=rows, cols=cols)

    @property
    def nnz(self) -> int:
        return int(self.rows.size)

    def pairs(self) -> list[tuple[int, int]]:
        return list(zip(self.rows.tolist(), self.cols.tolist()))

    def to_mask(self, shape: tuple[int, int]) -> HostArray:
        """Dense boolean mask of the pattern."""
        mask = np.zeros(shape, dtype=bool)
        mask[self.rows, self.cols] = True
        return mask

    def symmetric(self) -> SparsityPattern:
        """Full symmetric pattern of a lower-triangle pattern."""
        return SparsityPattern.from_pairs(
            self.pairs() + list(zip(self.cols.tolist(), self.rows.tolist()))
        )


def color_columns(pattern: SparsityPattern, num_columns: int) -> HostArray:
    """Greedy colouring of structurally orthogonal columns.

    Two columns get different colours whenever some row of ``pattern`` holds
    both, so summing the columns of one colour never mixes two nonzeros of
    the same row. The number of colours is bounded by the largest column
    neighbourhood, which does not grow with the horizon.

    Returns:
        Colour of every column, numbered from 0
    """
    columns_of_row: dict[int, list[int]] = {}
    rows_of_column: list[list[int]] = [[] for _ in range(num_columns)]
    for row, col in zip(pattern.rows.tolist(), pattern.cols.tolist()):
        columns_of_row.setdefault(row, []).append(col)
        rows_of_column[col].append(row)

    colors = [-1] * num_columns
    for col in range(num_columns):
        taken = {colors[other] for row in rows_of_column[col] for other in columns_of_row[row]}
        color = 0
        while color in taken:
            color += 1
        colors[col] = color
    return np.array(colors, dtype=np.int64)


def seed_matrix(colors: HostArray) -> HostArray:
    """One 0/1 seed direction per colour, shape ``(num_colors, num_columns)``."""
    num_colors = int(colors.max()) + 1 if colors.size else 0
    seeds = np.zeros((num_colors, colors.size))
    seeds[colors, np.arange(colors.size)] = 1.0
    return seeds


@dataclass(frozen=True)
class _RowDependencies:
    row: int
    variables: tuple[int, ...]
    nonlinear: tuple[int, ...]


def _constraint_dependencies(
    layout: IndexLayout, constraint_layout: ConstraintLayout
) -> Iterator[_RowDependencies]:
    horizon = layout.horizon

    # 1. dynamics
    for k in range(horizon):
        s = layout.time_index(k)
        x, y, phi, v = (layout.state_index(k, i) for i in StateIndex)
        x_next, y_next, phi_next, v_next = (layout.state_index(k + 1, i) for i in StateIndex)
        steer = layout.control_index(k, ControlIndex.STEER)
        a = layout.control_index(k, ControlIndex.A)

        yield _RowDependencies(
            constraint_layout.dynamics_index(k, StateIndex.X),
            (x_next, x, s, v, phi),
            (s, v, phi),
        )
        yield _RowDependencies(
            constraint_layout.dynamics_index(k, StateIndex.Y),
            (y_next, y, s, v, phi),
            (s, v, phi),
        )
        yield _RowDependencies(
            constraint_layout.dynamics_index(k, StateIndex.PHI),
            (phi_next, phi, s, v, steer),
            (s, v, steer),
        )
        yield _RowDependencies(
            constraint_layout.dynamics_index(k, StateIndex.V),
            (v_next, v, s, a),
            (s, a),
        )

    # 2. steering rate
    for k in range(horizon):
        s = layout.time_index(k)
        steer = layout.control_index(k, ControlIndex.STEER)
        variables = (steer, s)
        if k > 0:
            variables += (layout.control_index(k - 1, ControlIndex.STEER),)
        yield _RowDependencies(constraint_layout.steer_rate_index(k), variables, variables)

    # 3. stitching
    for c in range(constraint_layout.num_stitching):
        yield _RowDependencies(
            constraint_layout.stitching_index(c), (layout.control_index(0, c),), ()
        )

    # 4. obstacles
    for k in range(horizon + 1):
        x = layout.state_index(k, StateIndex.X)
        y = layout.state_index(k, StateIndex.Y)
        phi = layout.state_index(k, StateIndex.PHI)
        for j in range(layout.obstacle_count):
            lam = tuple(layout.l_index(k, j, e) for e in range(layout.edge_counts[j]))
            mu = tuple(layout.n_index(k, j, i) for i in range(MIU_DIM))

            yield _RowDependencies(
                constraint_layout.obstacle_index(k, j, ObstacleRow.DUAL_NORM), lam, lam
            )
            yield _RowDependencies(
                constraint_layout.obstacle_index(k, j, ObstacleRow.BALANCE_X),
                (mu[0], mu[2], phi) + lam,
                (phi,) + lam,
            )
            yield _RowDependencies(
                constraint_layout.obstacle_index(k, j, ObstacleRow.BALANCE_Y),
                (mu[1], mu[3], phi) + lam,
                (phi,) + lam,
            )
            yield _RowDependencies(
                constraint_layout.obstacle_index(k, j, ObstacleRow.SIGNED_DISTANCE),
                (x, y, phi) + lam + mu,
                (x, y, phi) + lam,
            )


def _objective_cliques(layout: IndexLayout) -> Iterator[tuple[int, ...]]:
    # Tracking, effort and stitching terms are separable squares
    for i in range(layout.state_start, layout.control_start):
        yield (i,)
    for i in range(layout.control_start, layout.time_start):
        yield (i,)

    # Control rate couples consecutive stages
    for k in range(layout.horizon - 1):
        for c in range(layout.control_dim):
            yield (layout.control_index(k, c), layout.control_index(k + 1, c))

    # Time-scaling smoothness
    t0 = layout.time_start
    for t in range(layout.time_vars - 1):
        yield (t0 + t, t0 + t + 1)
    for t in range(layout.time_vars - 2):
        yield (t0 + t, t0 + t + 1, t0 + t + 2)


def _lower_triangle(clique: Iterable[int]) -> Iterator[tuple[int, int]]:
    members = sorted(set(clique))
    for a_pos, a in enumerate(members):
        for b in members[: a_pos + 1]:
            yield a, b


def build_jacobian_pattern(
    layout: IndexLayout, constraint_layout: ConstraintLayout
) -> SparsityPattern:
    """Enumerate the constraint Jacobian nonzeros."""
    pairs = (
        (dep.row, col)
        for dep in _constraint_dependencies(layout, constraint_layout)
        for col in dep.variables
    )
    return SparsityPattern.from_pairs(pairs)


def build_hessian_pattern(
    layout: IndexLayout, constraint_layout: ConstraintLayout
) -> SparsityPattern:
    """Enumerate the lower-triangle nonzeros of the Hessian of the Lagrangian."""
    pairs: set[tuple[int, int]] = set()
    for clique in _objective_cliques(layout):
        pairs.update(_lower_triangle(clique))
    for dep in _constraint_dependencies(layout, constraint_layout):
        pairs.update(_lower_triangle(dep.nonlinear))
    return SparsityPattern.from_pairs(pairs)
