from __future__ import annotations

from dataclasses import dataclass

from .exceptions import _raise_error
from .types import BOUND_INFINITY, ErrorCode, Float, Verbosity


@dataclass(frozen=True)
class DistanceApproachOptions:
    # State tracking weights against the warm start
    weight_state_x: Float = 2.3
    weight_state_y: Float = 0.7
    weight_state_phi: Float = 1.5
    weight_state_v: Float = 0.0

    # Control magnitude weights
    weight_input_steer: Float = 0.3
    weight_input_a: Float = 1.1

    # Control rate weights
    weight_rate_steer: Float = 3.0
    weight_rate_a: Float = 2.5

    # Stitching weights against the last executed control
    weight_stitching_steer: Float = 1.75
    weight_stitching_a: Float = 3.25

    # Time-scaling smoothness weights
    weight_first_order_time: Float = 4.25
    weight_second_order_time: Float = 13.5

    # Physical limits
    max_steer_angle: Float = 0.5
    max_steer_rate: Float = 0.6
    max_speed_forward: Float = 2.0
    max_speed_reverse: Float = 1.0
    max_acceleration_forward: Float = 2.0
    max_acceleration_reverse: Float = 1.0

    # Time scaling
    min_time_sample_scaling: Float = 0.8
    max_time_sample_scaling: Float = 1.2
    use_fix_time: bool = False
    time_scaling_per_stage: bool = True

    # Dual variable upper bounds
    max_lambda: Float = BOUND_INFINITY
    max_miu: Float = BOUND_INFINITY

    # Obstacle clearance
    min_safety_distance: Float = 0.01

    # Equality tying the first control to the last executed one
    enable_stitching_constraint: bool = True

    # Verbosity level
    verbose: Verbosity = Verbosity.SILENT

    def __post_init__(self) -> None:
        """Validate option values after initialization."""
        weights = {
            "weight_state_x": self.weight_state_x,
            "weight_state_y": self.weight_state_y,
            "weight_state_phi": self.weight_state_phi,
            "weight_state_v": self.weight_state_v,
            "weight_input_steer": self.weight_input_steer,
            "weight_input_a": self.weight_input_a,
            "weight_rate_steer": self.weight_rate_steer,
            "weight_rate_a": self.weight_rate_a,
            "weight_stitching_steer": self.weight_stitching_steer,
            "weight_stitching_a": self.weight_stitching_a,
            "weight_first_order_time": self.weight_first_order_time,
            "weight_second_order_time": self.weight_second_order_time,
        }
        for name, value in weights.items():
            if value < 0:
                _raise_error(f"{name} must be non-negative", ErrorCode.INVALID_OPTION)

        if self.max_steer_angle <= 0:
            _raise_error("max_steer_angle must be positive", ErrorCode.INVALID_OPTION)
        if self.max_steer_rate <= 0:
            _raise_error("max_steer_rate must be positive", ErrorCode.INVALID_OPTION)
        if self.max_speed_forward < 0 or self.max_speed_reverse < 0:
            _raise_error("speed limits must be non-negative", ErrorCode.INVALID_OPTION)
        if self.max_acceleration_forward < 0 or self.max_acceleration_reverse < 0:
            _raise_error("acceleration limits must be non-negative", ErrorCode.INVALID_OPTION)
        if self.min_time_sample_scaling <= 0:
            _raise_error("min_time_sample_scaling must be positive", ErrorCode.INVALID_BOUND)
        if self.max_time_sample_scaling < self.min_time_sample_scaling:
            _raise_error(
                "max_time_sample_scaling must not be less than min_time_sample_scaling",
                ErrorCode.INVALID_BOUND,
            )
        if self.max_lambda < 0 or self.max_miu < 0:
            _raise_error("dual variable bounds must be non-negative", ErrorCode.INVALID_BOUND)
        if self.min_safety_distance < 0:
            _raise_error("min_safety_distance must be non-negative", ErrorCode.INVALID_OPTION)

    @property
    def state_weights(self) -> tuple[Float, Float, Float, Float]:
        return (
            self.weight_state_x,
            self.weight_state_y,
            self.weight_state_phi,
            self.weight_state_v,
        )

    @property
    def input_weights(self) -> tuple[Float, Float]:
        return (self.weight_input_steer, self.weight_input_a)

    @property
    def rate_weights(self) -> tuple[Float, Float]:
        return (self.weight_rate_steer, self.weight_rate_a)

    @property
    def stitching_weights(self) -> tuple[Float, Float]:
        return (self.weight_stitching_steer, self.weight_stitching_a)

    def time_scaling_bounds(self) -> tuple[Float, Float]:
        """Get the time-scaling interval, collapsed to [1, 1] in fixed-time mode."""
        if self.use_fix_time:
            return 1.0, 1.0
        return self.min_time_sample_scaling, self.max_time_sample_scaling
