"""Exception hierarchy for the JAX distance-approach NLP adapter.

Construction errors (``ConfigurationError``, ``DimensionError``) and
``TapeGenerationError`` are fatal. ``EvaluationError`` is recoverable: it
rejects one evaluation point and leaves the problem usable.
"""

from __future__ import annotations

from typing import NoReturn

from .types import ErrorCode


class DistanceApproachException(Exception):
    """Base exception class for distance-approach problem errors."""

    def __init__(self, message: str, error_code: ErrorCode) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message

    def __str__(self) -> str:
        return (
            f"DistanceApproach Error {self.error_code.value} "
            f"({_error_code_to_string(self.error_code)}): {self.message}"
        )


class ConfigurationError(DistanceApproachException, ValueError):
    """Exception for invalid construction inputs and options."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_OPTION) -> None:
        super().__init__(message, error_code)


class DimensionError(ConfigurationError):
    """Exception for arrays whose shape disagrees with the horizon or obstacle layout."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.DIMENSION_MISMATCH) -> None:
        super().__init__(message, error_code)


class InitializationError(DistanceApproachException):
    """Exception for callbacks issued out of lifecycle order."""

    def __init__(
        self, message: str, error_code: ErrorCode = ErrorCode.STRUCTURE_NOT_DECLARED
    ) -> None:
        super().__init__(message, error_code)


class TapeGenerationError(DistanceApproachException):
    """Exception for a formulation that cannot be traced or compiled."""

    def __init__(
        self, message: str, error_code: ErrorCode = ErrorCode.TAPE_GENERATION_FAILED
    ) -> None:
        super().__init__(message, error_code)


class EvaluationError(DistanceApproachException):
    """Exception for a rejected evaluation point."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NON_FINITE_VALUE) -> None:
        super().__init__(message, error_code)


_ERROR_CLASSES: dict[ErrorCode, type[DistanceApproachException]] = {
    ErrorCode.NON_POSITIVE_HORIZON: ConfigurationError,
    ErrorCode.TIMESTEP_NOT_POSITIVE: ConfigurationError,
    ErrorCode.DIMENSION_MISMATCH: DimensionError,
    ErrorCode.OBSTACLE_COUNT_MISMATCH: DimensionError,
    ErrorCode.INVALID_BOUND: ConfigurationError,
    ErrorCode.INVALID_OPTION: ConfigurationError,
    ErrorCode.INVALID_VEHICLE_GEOMETRY: ConfigurationError,
    ErrorCode.BAD_INDEX: DimensionError,
    ErrorCode.STRUCTURE_NOT_DECLARED: InitializationError,
    ErrorCode.ALREADY_FINALIZED: InitializationError,
    ErrorCode.SOLUTION_NOT_AVAILABLE: InitializationError,
    ErrorCode.TAPE_GENERATION_FAILED: TapeGenerationError,
    ErrorCode.NON_FINITE_VALUE: EvaluationError,
}


def _error_code_to_string(error_code: ErrorCode) -> str:
    """Convert error code to a descriptive string."""
    error_messages = {
        ErrorCode.NO_ERROR: "no error",
        ErrorCode.NON_POSITIVE_HORIZON: "horizon must be a positive integer",
        ErrorCode.TIMESTEP_NOT_POSITIVE: "timestep not positive",
        ErrorCode.DIMENSION_MISMATCH: "dimension mismatch",
        ErrorCode.OBSTACLE_COUNT_MISMATCH: "obstacle count disagrees with edge-count array",
        ErrorCode.INVALID_BOUND: "Invalid bound. Make sure all upper bounds are greater than or equal to the lower bounds",
        ErrorCode.INVALID_OPTION: "invalid option value",
        ErrorCode.INVALID_VEHICLE_GEOMETRY: "invalid vehicle geometry",
        ErrorCode.BAD_INDEX: "bad index",
        ErrorCode.STRUCTURE_NOT_DECLARED: "problem structure has not been declared",
        ErrorCode.ALREADY_FINALIZED: "problem already finalized",
        ErrorCode.SOLUTION_NOT_AVAILABLE: "solution not available before finalization",
        ErrorCode.TAPE_GENERATION_FAILED: "derivative tape generation failed",
        ErrorCode.NON_FINITE_VALUE: "evaluation produced a non-finite value",
    }
    return error_messages.get(error_code, "unknown error")


def _raise_error(message: str, error_code: ErrorCode) -> NoReturn:
    """Raise the exception class registered for ``error_code``."""
    error_class = _ERROR_CLASSES.get(error_code, DistanceApproachException)
    raise error_class(message, error_code)
