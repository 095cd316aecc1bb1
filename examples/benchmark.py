"""Performance benchmarking of tape generation and callback replay."""

import gc
import statistics
import time
from collections.abc import Callable

import jax
import numpy as np
from example_parallel_parking import EGO, WHEELBASE, box_obstacle, create_warm_start

from jaxobca import DistanceApproachProblem


def create_problem(horizon: int, num_obstacles: int = 2) -> DistanceApproachProblem:
    """Build a drive-past problem with ``num_obstacles`` boxes above the path."""
    stages = horizon + 1
    blocks = [box_obstacle(4.0 * j, 4.0 * j + 2.0, 6.0, 8.0) for j in range(num_obstacles)]
    x0 = np.array([0.0, 3.0, 0.0, 0.0])
    xf = np.array([4.0 * num_obstacles, 3.0, 0.0, 0.0])
    x_ws, u_ws = create_warm_start(x0, xf, horizon, 0.5)

    return DistanceApproachProblem(
        horizon=horizon,
        ts=0.5,
        ego=EGO,
        x_ws=x_ws,
        u_ws=u_ws,
        l_warm_up=np.full((4 * num_obstacles, stages), 0.1),
        n_warm_up=np.full((4 * num_obstacles, stages), 0.1),
        x0=x0,
        xf=xf,
        last_time_u=np.zeros(2),
        xy_bounds=[-5.0, 4.0 * num_obstacles + 5.0, -5.0, 10.0],
        obstacles_edges_num=[4] * num_obstacles,
        obstacles_num=num_obstacles,
        obstacles_a=np.vstack([a for a, _ in blocks]),
        obstacles_b=np.concatenate([b for _, b in blocks]),
        wheelbase=WHEELBASE,
    )


def time_callback(call: Callable[[], object], timing_runs: int) -> tuple[float, float]:
    """Mean and standard deviation of ``call`` in milliseconds."""
    call()  # first replay outside the measurement
    times = []
    for _ in range(timing_runs):
        start = time.perf_counter()
        call()
        times.append((time.perf_counter() - start) * 1000)
    return statistics.mean(times), statistics.stdev(times) if len(times) > 1 else 0.0


def benchmark_problem(horizon: int, timing_runs: int = 20) -> dict[str, float]:
    """Benchmark tape generation and every value callback at one horizon.

    Args:
        horizon: Number of stages
        timing_runs: Measurement iterations per callback

    Returns:
        Dictionary with timing statistics in milliseconds
    """
    print(f"\n=== Benchmarking horizon {horizon} ===")
    gc.collect()

    problem = create_problem(horizon)
    start = time.perf_counter()
    info = problem.describe_structure()
    tape_time = (time.perf_counter() - start) * 1000

    x = problem.starting_point()
    lagrange = np.ones(info.m)
    callbacks = {
        "objective": lambda: problem.objective(x),
        "gradient": lambda: problem.gradient(x),
        "constraints": lambda: problem.constraints(x),
        "jacobian": lambda: problem.jacobian(x),
        "hessian": lambda: problem.hessian(x, 1.0, lagrange),
    }

    jac_seeds, hess_seeds = problem.engine.seed_counts
    results = {"tape": tape_time, "jacobian_seeds": jac_seeds, "hessian_seeds": hess_seeds}
    print(f"  n={info.n}, m={info.m}, nnz_jac={info.nnz_jac_g}, nnz_hess={info.nnz_h_lag}")
    print(f"  Directional products per call: jacobian {jac_seeds}, hessian {hess_seeds}")
    print(f"  Tape generation: {tape_time:.1f} ms")
    for name, call in callbacks.items():
        mean, std = time_callback(call, timing_runs)
        results[name] = mean
        print(f"  {name:<12} {mean:8.3f} ± {std:.3f} ms")

    print(f"  Backend:     {jax.default_backend()}")
    return results


def benchmark_scaling():
    """Benchmark different horizons."""
    horizons = [20, 40, 80]
    results = {horizon: benchmark_problem(horizon) for horizon in horizons}

    print("\n=== Scaling Analysis ===")
    print(
        f"{'Horizon':<10} {'Tape (ms)':<12} {'Hessian (ms)':<14} {'Jacobian (ms)':<14} "
        f"{'Products (J/H)':<14}"
    )
    for horizon, result in results.items():
        products = f"{result['jacobian_seeds']}/{result['hessian_seeds']}"
        print(
            f"{horizon:<10} {result['tape']:<12.1f} {result['hessian']:<14.3f} "
            f"{result['jacobian']:<14.3f} {products:<14}"
        )
    return results


if __name__ == "__main__":
    print("JAX Distance-Approach Callback Benchmarking")
    print("=" * 50)

    benchmark_scaling()
