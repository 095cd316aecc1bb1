"""
Tests for IndexLayout and ConstraintLayout.
"""

import pytest

from jaxobca import (
    ConfigurationError,
    ConstraintLayout,
    DimensionError,
    ErrorCode,
    IndexLayout,
    ObstacleRow,
)


def scenario_a_layout():
    return IndexLayout(
        horizon=2,
        state_dim=4,
        control_dim=2,
        time_vars=1,
        edge_counts=(4,),
        obstacle_count=1,
    )


def test_closed_form_size_single_dual_block():
    """horizon 2, one 4-edge obstacle, one time variable -> n = 22."""
    layout = scenario_a_layout()
    assert layout.num_variables == 4 * 3 + 2 * 2 + 1 + 4 + 1 == 22


def test_dynamics_rows_of_small_horizon():
    constraints = ConstraintLayout(
        horizon=2, state_dim=4, control_dim=2, obstacle_count=1, stitching=False
    )
    assert constraints.steer_rate_start == 8
    assert constraints.num_constraints == 8 + 2 + 4 * 3


def test_segments_are_contiguous_and_ordered():
    layout = IndexLayout(
        horizon=3,
        state_dim=4,
        control_dim=2,
        time_vars=4,
        edge_counts=(4, 3),
        obstacle_count=2,
        dual_stages=4,
        miu_dim=4,
    )
    assert layout.state_start == 0
    assert layout.control_start == 16
    assert layout.time_start == 22
    assert layout.l_start == 26
    assert layout.n_start == 26 + 4 * 7
    assert layout.num_variables == layout.n_start + 4 * 8
    assert layout.edge_offsets == (0, 4)


def test_indices_follow_stage_major_order():
    layout = IndexLayout(
        horizon=3,
        state_dim=4,
        control_dim=2,
        time_vars=4,
        edge_counts=(4, 3),
        obstacle_count=2,
        dual_stages=4,
        miu_dim=4,
    )
    assert layout.state_index(1, 2) == 6
    assert layout.control_index(2, 1) == 16 + 5
    assert layout.time_index(3) == 25
    assert layout.l_index(1, 1, 2) == layout.l_start + 7 + 4 + 2
    assert layout.n_index(2, 1, 3) == layout.n_start + 2 * 8 + 4 + 3


def test_single_time_variable_is_shared_by_all_stages():
    layout = scenario_a_layout()
    assert {layout.time_index(k) for k in range(3)} == {layout.time_start}


def test_every_index_is_unique():
    layout = IndexLayout(
        horizon=2,
        state_dim=4,
        control_dim=2,
        time_vars=3,
        edge_counts=(3, 5),
        obstacle_count=2,
        dual_stages=3,
        miu_dim=4,
    )
    indices = []
    for k in range(3):
        indices += [layout.state_index(k, i) for i in range(4)]
        indices.append(layout.time_index(k))
        for j, edges in enumerate(layout.edge_counts):
            indices += [layout.l_index(k, j, e) for e in range(edges)]
            indices += [layout.n_index(k, j, c) for c in range(4)]
    for k in range(2):
        indices += [layout.control_index(k, c) for c in range(2)]
    assert sorted(indices) == list(range(layout.num_variables))


@pytest.mark.parametrize(
    "call",
    [
        lambda lay: lay.state_index(3, 0),
        lambda lay: lay.state_index(0, 4),
        lambda lay: lay.control_index(2, 0),
        lambda lay: lay.time_index(-1),
        lambda lay: lay.l_index(0, 0, 4),
        lambda lay: lay.n_index(0, 1, 0),
    ],
)
def test_out_of_range_index_raises(call):
    with pytest.raises(DimensionError) as exc_info:
        call(scenario_a_layout())
    assert exc_info.value.error_code == ErrorCode.BAD_INDEX


def test_non_positive_horizon_rejected():
    with pytest.raises(ConfigurationError) as exc_info:
        IndexLayout(
            horizon=0, state_dim=4, control_dim=2, time_vars=1, edge_counts=(), obstacle_count=0
        )
    assert exc_info.value.error_code == ErrorCode.NON_POSITIVE_HORIZON


def test_obstacle_count_must_match_edge_counts():
    with pytest.raises(ConfigurationError) as exc_info:
        IndexLayout(
            horizon=2, state_dim=4, control_dim=2, time_vars=1, edge_counts=(4,), obstacle_count=2
        )
    assert exc_info.value.error_code == ErrorCode.OBSTACLE_COUNT_MISMATCH


def test_obstacle_rows_follow_stage_then_obstacle_order():
    constraints = ConstraintLayout(horizon=2, state_dim=4, control_dim=2, obstacle_count=2)
    assert constraints.stitching_start == 10
    assert constraints.obstacle_start == 12
    assert constraints.obstacle_index(0, 0, ObstacleRow.DUAL_NORM) == 12
    assert constraints.obstacle_index(1, 1, ObstacleRow.SIGNED_DISTANCE) == 12 + 8 + 4 + 3
    assert constraints.num_constraints == 12 + 3 * 8


def test_stitching_rows_are_optional():
    with_stitching = ConstraintLayout(horizon=4, state_dim=4, control_dim=2, obstacle_count=0)
    without = ConstraintLayout(
        horizon=4, state_dim=4, control_dim=2, obstacle_count=0, stitching=False
    )
    assert with_stitching.num_constraints - without.num_constraints == 2
    with pytest.raises(DimensionError):
        without.stitching_index(0)
