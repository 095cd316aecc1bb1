"""Decision-vector and constraint-vector layout for the distance approach.

The decision vector is the concatenation, in this order, of the state
trajectory (stage-major), the control trajectory (stage-major), the
time-scaling variables, the dual-l block and the dual-n block. Both dual
blocks are stored stage-major with the obstacles in input order. All
offsets are plain arithmetic on frozen fields, so every lookup is O(1).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import accumulate

from .exceptions import _raise_error
from .types import OBSTACLE_ROWS, ErrorCode


@dataclass(frozen=True)
class IndexLayout:
    """Offsets of every segment of the flat decision vector.

    ``dual_stages`` is the number of stages the dual blocks are replicated
    over and ``miu_dim`` the length of dual-n per obstacle. With both equal to
    one the size reduces to
    ``state_dim (N+1) + control_dim N + time_vars + sum(edges) + obstacles``.
    """

    horizon: int
    state_dim: int
    control_dim: int
    time_vars: int
    edge_counts: tuple[int, ...]
    obstacle_count: int
    dual_stages: int = 1
    miu_dim: int = 1
    edge_offsets: tuple[int, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "edge_counts", tuple(int(e) for e in self.edge_counts))

        if self.horizon <= 0:
            _raise_error(
                f"Horizon must be positive, got {self.horizon}", ErrorCode.NON_POSITIVE_HORIZON
            )
        if self.state_dim <= 0 or self.control_dim <= 0:
            _raise_error("State and control dimensions must be positive", ErrorCode.BAD_INDEX)
        if self.time_vars <= 0:
            _raise_error("At least one time-scaling variable is required", ErrorCode.BAD_INDEX)
        if self.obstacle_count < 0:
            _raise_error("Obstacle count must be non-negative", ErrorCode.OBSTACLE_COUNT_MISMATCH)
        if len(self.edge_counts) != self.obstacle_count:
            _raise_error(
                f"Obstacle count {self.obstacle_count} disagrees with "
                f"{len(self.edge_counts)} edge counts",
                ErrorCode.OBSTACLE_COUNT_MISMATCH,
            )
        if any(e <= 0 for e in self.edge_counts):
            _raise_error(
                f"Every obstacle needs at least one edge, got {self.edge_counts}",
                ErrorCode.DIMENSION_MISMATCH,
            )
        if self.dual_stages <= 0 or self.miu_dim <= 0:
            _raise_error("Dual block dimensions must be positive", ErrorCode.BAD_INDEX)

        object.__setattr__(
            self, "edge_offsets", tuple(accumulate(self.edge_counts, initial=0))[:-1]
        )

    # Segment sizes
    @property
    def edges_sum(self) -> int:
        return sum(self.edge_counts)

    @property
    def num_states(self) -> int:
        return self.state_dim * (self.horizon + 1)

    @property
    def num_controls(self) -> int:
        return self.control_dim * self.horizon

    @property
    def l_stage_size(self) -> int:
        return self.edges_sum

    @property
    def n_stage_size(self) -> int:
        return self.miu_dim * self.obstacle_count

    # Segment offsets
    @property
    def state_start(self) -> int:
        return 0

    @property
    def control_start(self) -> int:
        return self.num_states

    @property
    def time_start(self) -> int:
        return self.control_start + self.num_controls

    @property
    def l_start(self) -> int:
        return self.time_start + self.time_vars

    @property
    def n_start(self) -> int:
        return self.l_start + self.dual_stages * self.l_stage_size

    @property
    def num_variables(self) -> int:
        return self.n_start + self.dual_stages * self.n_stage_size

    # Index helpers
    def state_index(self, stage: int, component: int) -> int:
        """Get the flat index of ``component`` of the state at ``stage``."""
        self._check_range(stage, self.horizon + 1, "state stage")
        self._check_range(component, self.state_dim, "state component")
        return self.state_start + stage * self.state_dim + component

    def control_index(self, stage: int, component: int) -> int:
        """Get the flat index of ``component`` of the control at ``stage``."""
        self._check_range(stage, self.horizon, "control stage")
        self._check_range(component, self.control_dim, "control component")
        return self.control_start + stage * self.control_dim + component

    def time_index(self, stage: int) -> int:
        """Get the time-scaling variable governing ``stage``.

        Stages past the last time variable share it, so a single variable
        scales the whole horizon.
        """
        self._check_range(stage, self.horizon + 1, "time stage")
        return self.time_start + min(stage, self.time_vars - 1)

    def l_index(self, stage: int, obstacle: int, edge: int) -> int:
        self._check_range(stage, self.dual_stages, "dual stage")
        self._check_range(obstacle, self.obstacle_count, "obstacle")
        self._check_range(edge, self.edge_counts[obstacle], "obstacle edge")
        return self.l_start + stage * self.l_stage_size + self.edge_offsets[obstacle] + edge

    def n_index(self, stage: int, obstacle: int, component: int) -> int:
        self._check_range(stage, self.dual_stages, "dual stage")
        self._check_range(obstacle, self.obstacle_count, "obstacle")
        self._check_range(component, self.miu_dim, "dual-n component")
        return (
            self.n_start
            + stage * self.n_stage_size
            + obstacle * self.miu_dim
            + component
        )

    # Segment slices
    def state_slice(self) -> slice:
        return slice(self.state_start, self.control_start)

    def control_slice(self) -> slice:
        return slice(self.control_start, self.time_start)

    def time_slice(self) -> slice:
        return slice(self.time_start, self.l_start)

    def l_slice(self) -> slice:
        return slice(self.l_start, self.n_start)

    def n_slice(self) -> slice:
        return slice(self.n_start, self.num_variables)

    @staticmethod
    def _check_range(value: int, limit: int, what: str) -> None:
        if value < 0 or value >= limit:
            _raise_error(f"{what} index {value} out of range [0, {limit})", ErrorCode.BAD_INDEX)


@dataclass(frozen=True)
class ConstraintLayout:
    """Offsets of every block of the constraint vector.

    Blocks in order: dynamics (``state_dim`` rows per stage transition),
    steering rate (one row per control stage), stitching (``control_dim``
    rows, optional) and obstacles (``OBSTACLE_ROWS`` rows per obstacle per
    stage).
    """

    horizon: int
    state_dim: int
    control_dim: int
    obstacle_count: int
    stitching: bool = True

    @property
    def dynamics_start(self) -> int:
        return 0

    @property
    def steer_rate_start(self) -> int:
        return self.state_dim * self.horizon

    @property
    def stitching_start(self) -> int:
        return self.steer_rate_start + self.horizon

    @property
    def num_stitching(self) -> int:
        return self.control_dim if self.stitching else 0

    @property
    def obstacle_start(self) -> int:
        return self.stitching_start + self.num_stitching

    @property
    def obstacle_stage_size(self) -> int:
        return OBSTACLE_ROWS * self.obstacle_count

    @property
    def num_constraints(self) -> int:
        return self.obstacle_start + (self.horizon + 1) * self.obstacle_stage_size

    def dynamics_index(self, stage: int, component: int) -> int:
        """Row of the propagation equality from ``stage`` to ``stage + 1``."""
        IndexLayout._check_range(stage, self.horizon, "dynamics stage")
        IndexLayout._check_range(component, self.state_dim, "state component")
        return self.dynamics_start + stage * self.state_dim + component

    def steer_rate_index(self, stage: int) -> int:
        IndexLayout._check_range(stage, self.horizon, "steering-rate stage")
        return self.steer_rate_start + stage

    def stitching_index(self, component: int) -> int:
        IndexLayout._check_range(component, self.num_stitching, "stitching component")
        return self.stitching_start + component

    def obstacle_index(self, stage: int, obstacle: int, row: int) -> int:
        IndexLayout._check_range(stage, self.horizon + 1, "obstacle stage")
        IndexLayout._check_range(obstacle, self.obstacle_count, "obstacle")
        IndexLayout._check_range(row, OBSTACLE_ROWS, "obstacle row")
        return (
            self.obstacle_start
            + stage * self.obstacle_stage_size
            + obstacle * OBSTACLE_ROWS
            + row
        )
