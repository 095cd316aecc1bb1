"""JAX-based distance-approach trajectory optimization package.

This package lays out the OBCA (optimization-based collision avoidance)
parking problem as a sparse nonlinear program and answers the callback
sequence of an interior-point NLP solver, using JAX for automatic
differentiation and compiled derivative evaluation.
"""

from __future__ import annotations

import jax

# Bounds and starting point
from .bounds import ProblemBounds, build_problem_bounds, build_starting_point

# Derivative engine
from .derivative_engine import DerivativeEngine

# Exception hierarchy
from .exceptions import (
    ConfigurationError,
    DimensionError,
    DistanceApproachException,
    EvaluationError,
    InitializationError,
    TapeGenerationError,
)
from .formulation import DistanceApproachFormulation

# Layouts and sizes
from .index_layout import ConstraintLayout, IndexLayout

# Core problem interface
from .problem import DistanceApproachProblem
from .problem_data import ProblemData
from .problem_descriptor import NLPInfo, build_layouts, compute_problem_sizes, describe_problem

# Configuration classes
from .problem_options import DistanceApproachOptions
from .solution import SolutionRecord, extract_solution
from .solver_stats import SolveStats
from .sparsity import SparsityPattern, build_hessian_pattern, build_jacobian_pattern

# Type definitions
from .types import (
    BOUND_INFINITY,
    CONTROL_DIM,
    MIU_DIM,
    OBSTACLE_ROWS,
    STATE_DIM,
    ControlIndex,
    ErrorCode,
    Float,
    IndexStyle,
    ObstacleRow,
    ProblemState,
    SolveStatus,
    StateIndex,
    Verbosity,
)
from .vehicle import VehicleGeometry


# Version information
__version__ = "0.1.0"
__license__ = "MIT"

# Public API
__all__ = [
    "BOUND_INFINITY",
    "CONTROL_DIM",
    "MIU_DIM",
    "OBSTACLE_ROWS",
    "STATE_DIM",
    "ConfigurationError",
    "ConstraintLayout",
    "ControlIndex",
    "DerivativeEngine",
    "DimensionError",
    "DistanceApproachException",
    "DistanceApproachFormulation",
    "DistanceApproachOptions",
    # Main problem interface
    "DistanceApproachProblem",
    "ErrorCode",
    "EvaluationError",
    "Float",
    "IndexLayout",
    "IndexStyle",
    "InitializationError",
    "NLPInfo",
    "ObstacleRow",
    "ProblemBounds",
    "ProblemData",
    "ProblemState",
    "SolutionRecord",
    "SolveStats",
    "SolveStatus",
    "SparsityPattern",
    "StateIndex",
    "TapeGenerationError",
    "VehicleGeometry",
    "Verbosity",
    "__license__",
    "__version__",
    "build_hessian_pattern",
    "build_jacobian_pattern",
    "build_layouts",
    "build_problem_bounds",
    "build_starting_point",
    "compute_problem_sizes",
    "describe_problem",
    "extract_solution",
]

# Enable 64-bit precision for numerical stability
jax.config.update("jax_enable_x64", True)
