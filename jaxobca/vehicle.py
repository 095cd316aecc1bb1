"""Vehicle footprint used by the kinematic model and the obstacle constraints."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike

from .exceptions import _raise_error
from .types import ErrorCode, Float


@dataclass(frozen=True)
class VehicleGeometry:
    """Rectangular vehicle footprint around the rear-axle reference point.

    Distances are measured from the reference point to each box edge. The box
    is described in its own frame by ``G p <= g`` with
    ``G = [[1, 0], [0, 1], [-1, 0], [0, -1]]``.
    """

    wheelbase: Float
    front_edge_to_center: Float
    right_edge_to_center: Float
    back_edge_to_center: Float
    left_edge_to_center: Float

    def __post_init__(self) -> None:
        if self.wheelbase <= 0:
            _raise_error("wheelbase must be positive", ErrorCode.INVALID_VEHICLE_GEOMETRY)
        if self.length <= 0 or self.width <= 0:
            _raise_error(
                f"footprint must have positive extent, got length={self.length}, "
                f"width={self.width}",
                ErrorCode.INVALID_VEHICLE_GEOMETRY,
            )

    @classmethod
    def from_ego(cls, ego: ArrayLike, wheelbase: Float) -> VehicleGeometry:
        """Build from the footprint vector ``[front, right, back, left]``."""
        ego_arr = np.asarray(ego, dtype=np.float64).reshape(-1)
        if ego_arr.shape != (4,):
            _raise_error(
                f"ego footprint must have 4 entries, got shape {np.shape(ego)}",
                ErrorCode.DIMENSION_MISMATCH,
            )
        front, right, back, left = (float(v) for v in ego_arr)
        return cls(
            wheelbase=float(wheelbase),
            front_edge_to_center=front,
            right_edge_to_center=right,
            back_edge_to_center=back,
            left_edge_to_center=left,
        )

    @property
    def length(self) -> Float:
        return self.front_edge_to_center + self.back_edge_to_center

    @property
    def width(self) -> Float:
        return self.left_edge_to_center + self.right_edge_to_center

    @property
    def center_offset(self) -> Float:
        """Distance from the reference point to the box centre along the heading."""
        return self.length / 2.0 - self.back_edge_to_center

    @property
    def box_offsets(self) -> np.ndarray:
        """Half extents ``g`` of the centred box, ordered like the rows of ``G``."""
        half_length = self.length / 2.0
        half_width = self.width / 2.0
        return np.array([half_length, half_width, half_length, half_width], dtype=np.float64)
