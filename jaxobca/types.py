"""Core type definitions for the JAX distance-approach NLP adapter.

This module provides the array aliases, enums and fixed dimensions shared by
the layout, formulation and solver-facing modules.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum, IntEnum
from typing import TypeAlias

import numpy as np
from jax import Array


# Array types
StateTrajectory: TypeAlias = Array  # (horizon + 1, 4) inside the formulation
ControlTrajectory: TypeAlias = Array  # (horizon, 2) inside the formulation
DecisionVector: TypeAlias = Array
ConstraintVector: TypeAlias = Array
HostArray: TypeAlias = np.ndarray  # numpy arrays handed to the solver

# Scalar types
Float: TypeAlias = float

# Function type aliases
ObjectiveFunction: TypeAlias = Callable[[DecisionVector], Array]
ConstraintFunction: TypeAlias = Callable[[DecisionVector], ConstraintVector]

# Kinematic bicycle model dimensions
STATE_DIM = 4
CONTROL_DIM = 2

# Vehicle box faces: one dual-n entry per face
MIU_DIM = 4

# Rows per obstacle per stage: dual norm, two normal-balance rows, signed distance
OBSTACLE_ROWS = 4

# IPOPT treats magnitudes >= 1e19 as infinite
BOUND_INFINITY = 2.0e19


class StateIndex(IntEnum):
    """Position of each coordinate inside a state vector."""

    X = 0
    Y = 1
    PHI = 2
    V = 3


class ControlIndex(IntEnum):
    """Position of each coordinate inside a control vector."""

    STEER = 0
    A = 1


class ObstacleRow(IntEnum):
    """Order of the per-obstacle constraint rows."""

    DUAL_NORM = 0
    BALANCE_X = 1
    BALANCE_Y = 2
    SIGNED_DISTANCE = 3


class IndexStyle(Enum):
    """Index convention reported to the solver."""

    C_STYLE = 0
    FORTRAN_STYLE = 1


class ProblemState(Enum):
    """Lifecycle of one problem instance."""

    UNINITIALIZED = "Uninitialized"
    STRUCTURE_DECLARED = "StructureDeclared"
    EVALUATING = "Evaluating"
    FINALIZED = "Finalized"


class SolveStatus(Enum):
    """Solver termination status, valued by the IPOPT application return code."""

    SOLVE_SUCCEEDED = 0
    SOLVED_TO_ACCEPTABLE_LEVEL = 1
    INFEASIBLE_PROBLEM_DETECTED = 2
    SEARCH_DIRECTION_BECOMES_TOO_SMALL = 3
    DIVERGING_ITERATES = 4
    USER_REQUESTED_STOP = 5
    FEASIBLE_POINT_FOUND = 6
    MAXIMUM_ITERATIONS_EXCEEDED = -1
    RESTORATION_FAILED = -2
    ERROR_IN_STEP_COMPUTATION = -3
    MAXIMUM_CPUTIME_EXCEEDED = -4
    MAXIMUM_WALLTIME_EXCEEDED = -5
    NOT_ENOUGH_DEGREES_OF_FREEDOM = -10
    INVALID_PROBLEM_DEFINITION = -11
    INVALID_OPTION = -12
    INVALID_NUMBER_DETECTED = -13
    UNRECOVERABLE_EXCEPTION = -100
    NON_IPOPT_EXCEPTION_THROWN = -101
    INSUFFICIENT_MEMORY = -102
    INTERNAL_ERROR = -199

    @classmethod
    def from_code(cls, code: int) -> SolveStatus:
        """Map a solver return code, reading unknown codes as INTERNAL_ERROR."""
        try:
            return cls(int(code))
        except ValueError:
            return cls.INTERNAL_ERROR

    def is_success(self) -> bool:
        """Check whether the solver reports a (possibly acceptable) optimum."""
        return self in (SolveStatus.SOLVE_SUCCEEDED, SolveStatus.SOLVED_TO_ACCEPTABLE_LEVEL)


class Verbosity(Enum):
    """Verbosity levels for solver output."""

    SILENT = "Silent"
    SUMMARY = "Summary"
    ITERATIONS = "Iterations"


class ErrorCode(Enum):
    """Error codes carried by every package exception."""

    NO_ERROR = "NoError"
    NON_POSITIVE_HORIZON = "NonPositiveHorizon"
    TIMESTEP_NOT_POSITIVE = "TimestepNotPositive"
    DIMENSION_MISMATCH = "DimensionMismatch"
    OBSTACLE_COUNT_MISMATCH = "ObstacleCountMismatch"
    INVALID_BOUND = "InvalidBound"
    INVALID_OPTION = "InvalidOption"
    INVALID_VEHICLE_GEOMETRY = "InvalidVehicleGeometry"
    BAD_INDEX = "BadIndex"
    STRUCTURE_NOT_DECLARED = "StructureNotDeclared"
    ALREADY_FINALIZED = "AlreadyFinalized"
    SOLUTION_NOT_AVAILABLE = "SolutionNotAvailable"
    TAPE_GENERATION_FAILED = "TapeGenerationFailed"
    NON_FINITE_VALUE = "NonFiniteValue"
