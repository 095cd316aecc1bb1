"""Derivative engine: record the formulas once, replay them at every point.

Tape generation lowers and compiles five programs at a representative
point: objective, gradient, constraints, Jacobian values and Hessian-of-the-
Lagrangian values. The fixed sparsity patterns are coloured once; the
Jacobian program evaluates one forward-mode product per colour and the
Hessian program one forward-over-reverse product per colour, then picks the
pattern entries out of the compressed result. Every later call only replays
a compiled program with new numeric inputs.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from numpy.typing import ArrayLike

from .exceptions import DistanceApproachException, TapeGenerationError, _raise_error
from .sparsity import SparsityPattern, color_columns, seed_matrix
from .types import ConstraintFunction, ErrorCode, Float, HostArray, ObjectiveFunction


logger = logging.getLogger(__name__)

# Fixed seed so the tape-time pattern check is reproducible
_CHECK_SEED = 1729


@dataclass(frozen=True)
class _Tape:
    """Compiled programs replayed by every evaluation."""

    objective: Callable[..., Any]
    gradient: Callable[..., Any]
    constraints: Callable[..., Any]
    jacobian_values: Callable[..., Any]
    hessian_values: Callable[..., Any]
    jacobian_pattern: SparsityPattern
    hessian_pattern: SparsityPattern
    jacobian_seeds: int
    hessian_seeds: int


def _check_finite(values: HostArray, what: str) -> None:
    if not np.all(np.isfinite(values)):
        bad = int(np.count_nonzero(~np.isfinite(values)))
        _raise_error(f"{what} has {bad} non-finite entries", ErrorCode.NON_FINITE_VALUE)


def _sparse_product(
    values: HostArray, rows: HostArray, cols: HostArray, direction: HostArray, size: int
) -> tuple[HostArray, HostArray]:
    product = np.zeros(size)
    magnitude = np.zeros(size)
    np.add.at(product, rows, values * direction[cols])
    np.add.at(magnitude, rows, np.abs(values * direction[cols]))
    return product, magnitude


def _first_mismatch(actual: HostArray, expected: HostArray, magnitude: HostArray) -> int | None:
    tolerance = 1e-8 * (1.0 + np.abs(actual) + magnitude)
    bad = np.flatnonzero(np.abs(actual - expected) > tolerance)
    return int(bad[0]) if bad.size else None


class DerivativeEngine:
    """Owns the tape of one problem instance."""

    def __init__(
        self,
        objective_function: ObjectiveFunction,
        constraint_function: ConstraintFunction,
        num_variables: int,
        num_constraints: int,
    ):
        self._objective_function = objective_function
        self._constraint_function = constraint_function
        self.num_variables = num_variables
        self.num_constraints = num_constraints
        self._tape: _Tape | None = None

    def is_taped(self) -> bool:
        return self._tape is not None

    @property
    def seed_counts(self) -> tuple[int, int]:
        """Number of Jacobian and Hessian directional products per replay."""
        tape = self._require_tape()
        return tape.jacobian_seeds, tape.hessian_seeds

    def _lagrangian(self, x: Array, obj_factor: Array, lagrange: Array) -> Array:
        return obj_factor * self._objective_function(x) + jnp.dot(
            lagrange, self._constraint_function(x)
        )

    def generate_tapes(
        self,
        x_rep: ArrayLike,
        jacobian_pattern: SparsityPattern,
        hessian_pattern: SparsityPattern,
    ) -> None:
        """Record and compile all derivative programs at ``x_rep``.

        Does nothing when the tape already exists.

        Raises:
            TapeGenerationError: if tracing or compiling fails, if the
                representative point yields non-finite derivatives, or if a
                derivative has a nonzero outside the declared patterns.
        """
        if self._tape is not None:
            return

        start_time = time.perf_counter()
        n, m = self.num_variables, self.num_constraints
        x_point = self._as_point(x_rep)
        rng = np.random.default_rng(_CHECK_SEED)
        factor = jnp.asarray(1.0, dtype=x_point.dtype)
        multipliers = jnp.asarray(rng.uniform(0.5, 1.5, m), dtype=x_point.dtype)

        jac_rows = np.asarray(jacobian_pattern.rows)
        jac_cols = np.asarray(jacobian_pattern.cols)
        hess_rows = np.asarray(hessian_pattern.rows)
        hess_cols = np.asarray(hessian_pattern.cols)

        jac_colors = color_columns(jacobian_pattern, n)
        hess_colors = color_columns(hessian_pattern.symmetric(), n)
        jac_seeds = seed_matrix(jac_colors)
        hess_seeds = seed_matrix(hess_colors)
        jac_entry_colors = jac_colors[jac_cols]
        hess_entry_colors = hess_colors[hess_cols]

        objective = self._objective_function
        constraints = self._constraint_function
        lagrangian_gradient = jax.grad(self._lagrangian)

        def jacobian_values(x: Array) -> Array:
            def push(seed: Array) -> Array:
                return jax.jvp(constraints, (x,), (seed,))[1]

            compressed = jax.vmap(push)(jnp.asarray(jac_seeds, dtype=x.dtype))
            return compressed[jac_entry_colors, jac_rows]

        def hessian_values(x: Array, obj_factor: Array, lagrange: Array) -> Array:
            def hvp(seed: Array) -> Array:
                return jax.jvp(
                    lambda z: lagrangian_gradient(z, obj_factor, lagrange), (x,), (seed,)
                )[1]

            compressed = jax.vmap(hvp)(jnp.asarray(hess_seeds, dtype=x.dtype))
            return compressed[hess_entry_colors, hess_rows]

        try:
            g_shape = jax.eval_shape(constraints, x_point).shape
            if g_shape != (m,):
                _raise_error(
                    f"Constraint function returned shape {g_shape}, expected ({m},)",
                    ErrorCode.TAPE_GENERATION_FAILED,
                )
            tape = _Tape(
                objective=jax.jit(objective).lower(x_point).compile(),
                gradient=jax.jit(jax.grad(objective)).lower(x_point).compile(),
                constraints=jax.jit(constraints).lower(x_point).compile(),
                jacobian_values=jax.jit(jacobian_values).lower(x_point).compile(),
                hessian_values=jax.jit(hessian_values)
                .lower(x_point, factor, multipliers)
                .compile(),
                jacobian_pattern=jacobian_pattern,
                hessian_pattern=hessian_pattern,
                jacobian_seeds=int(jac_seeds.shape[0]),
                hessian_seeds=int(hess_seeds.shape[0]),
            )
            self._verify_patterns(tape, x_point, factor, multipliers, rng)
        except DistanceApproachException:
            raise
        except Exception as e:
            raise TapeGenerationError(f"Failed to record derivative tapes: {e}") from e

        self._tape = tape
        logger.debug(
            "Generated tapes for n=%d, m=%d (nnz_jac=%d in %d products, "
            "nnz_hess=%d in %d products) in %.1f ms",
            n,
            m,
            jacobian_pattern.nnz,
            tape.jacobian_seeds,
            hessian_pattern.nnz,
            tape.hessian_seeds,
            (time.perf_counter() - start_time) * 1000,
        )

    def _verify_patterns(
        self,
        tape: _Tape,
        x_point: Array,
        factor: Array,
        multipliers: Array,
        rng: np.random.Generator,
    ) -> None:
        """Compare the compressed derivatives with a product along a random direction.

        A nonzero outside a pattern either leaks into a pattern entry of the
        same colour or is dropped, and both break ``J d`` and ``H d``.
        """
        n, m = self.num_variables, self.num_constraints
        jac_values = np.asarray(tape.jacobian_values(x_point))
        hess_values = np.asarray(tape.hessian_values(x_point, factor, multipliers))
        if not (np.all(np.isfinite(jac_values)) and np.all(np.isfinite(hess_values))):
            _raise_error(
                "Representative point yields non-finite derivatives",
                ErrorCode.TAPE_GENERATION_FAILED,
            )

        direction = rng.standard_normal(n)
        d = jnp.asarray(direction, dtype=x_point.dtype)

        jac_times_d = np.asarray(
            jax.jit(lambda x, v: jax.jvp(self._constraint_function, (x,), (v,))[1])(x_point, d)
        )
        jac = tape.jacobian_pattern
        expected, magnitude = _sparse_product(jac_values, jac.rows, jac.cols, direction, m)
        row = _first_mismatch(jac_times_d, expected, magnitude)
        if row is not None:
            _raise_error(
                f"Jacobian row {row} has nonzeros missing from the sparsity pattern",
                ErrorCode.TAPE_GENERATION_FAILED,
            )

        lagrangian_gradient = jax.grad(self._lagrangian)
        hess_times_d = np.asarray(
            jax.jit(
                lambda x, v: jax.jvp(
                    lambda z: lagrangian_gradient(z, factor, multipliers), (x,), (v,)
                )[1]
            )(x_point, d)
        )
        hess = tape.hessian_pattern
        lower, lower_magnitude = _sparse_product(hess_values, hess.rows, hess.cols, direction, n)
        off_diagonal = hess.rows != hess.cols
        upper, upper_magnitude = _sparse_product(
            hess_values[off_diagonal],
            hess.cols[off_diagonal],
            hess.rows[off_diagonal],
            direction,
            n,
        )
        row = _first_mismatch(hess_times_d, lower + upper, lower_magnitude + upper_magnitude)
        if row is not None:
            _raise_error(
                f"Hessian row {row} has nonzeros missing from the sparsity pattern",
                ErrorCode.TAPE_GENERATION_FAILED,
            )

    # Replay

    def objective(self, x: ArrayLike) -> Float:
        tape = self._require_tape()
        value = np.asarray(tape.objective(self._as_point(x)), dtype=np.float64)
        _check_finite(value, "Objective")
        return float(value)

    def gradient(self, x: ArrayLike) -> HostArray:
        tape = self._require_tape()
        grad = np.asarray(tape.gradient(self._as_point(x)), dtype=np.float64)
        _check_finite(grad, "Objective gradient")
        return grad

    def constraints(self, x: ArrayLike) -> HostArray:
        tape = self._require_tape()
        g = np.asarray(tape.constraints(self._as_point(x)), dtype=np.float64)
        _check_finite(g, "Constraint vector")
        return g

    def jacobian_values(self, x: ArrayLike) -> HostArray:
        tape = self._require_tape()
        values = np.asarray(tape.jacobian_values(self._as_point(x)), dtype=np.float64)
        _check_finite(values, "Constraint Jacobian")
        return values

    def hessian_values(self, x: ArrayLike, obj_factor: Float, lagrange: ArrayLike) -> HostArray:
        tape = self._require_tape()
        x_point = self._as_point(x)
        factor = jnp.asarray(obj_factor, dtype=x_point.dtype)
        multipliers = np.asarray(lagrange, dtype=np.float64).reshape(-1)
        if multipliers.size != self.num_constraints:
            _raise_error(
                f"Expected {self.num_constraints} constraint multipliers, got {multipliers.size}",
                ErrorCode.DIMENSION_MISMATCH,
            )
        values = np.asarray(
            tape.hessian_values(x_point, factor, jnp.asarray(multipliers, dtype=x_point.dtype)),
            dtype=np.float64,
        )
        _check_finite(values, "Lagrangian Hessian")
        return values

    def _require_tape(self) -> _Tape:
        if self._tape is None:
            _raise_error(
                "Derivative tapes have not been generated", ErrorCode.STRUCTURE_NOT_DECLARED
            )
        return self._tape

    def _as_point(self, x: ArrayLike) -> Array:
        arr = np.asarray(x, dtype=np.float64).reshape(-1)
        if arr.size != self.num_variables:
            _raise_error(
                f"Expected {self.num_variables} decision variables, got {arr.size}",
                ErrorCode.DIMENSION_MISMATCH,
            )
        return jnp.asarray(arr)
