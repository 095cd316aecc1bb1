"""Parallel parking example for the JAX distance-approach NLP.

This example shows how to:
1. Describe a parking scene (vehicle footprint, obstacles, map extent)
2. Build a naive warm start between the start and the parking pose
3. Solve the distance-approach NLP with IPOPT (requires ``cyipopt``)
4. Extract and check the optimized trajectory

The vehicle starts beside the front parked car and reverses into the gap
between two parked cars.
"""

from __future__ import annotations

import logging
import time

import numpy as np

from jaxobca import DistanceApproachOptions, DistanceApproachProblem, Verbosity


# Vehicle footprint [front, right, back, left] around the rear axle
EGO = np.array([3.89, 1.055, 1.043, 1.055])
WHEELBASE = 2.8448


def box_obstacle(
    x_min: float, x_max: float, y_min: float, y_max: float
) -> tuple[np.ndarray, np.ndarray]:
    """Half-space form ``A p <= b`` of an axis-aligned box."""
    A = np.array([[1.0, 0.0], [0.0, 1.0], [-1.0, 0.0], [0.0, -1.0]])
    b = np.array([x_max, y_max, -x_min, -y_min])
    return A, b


def create_warm_start(
    x0: np.ndarray, xf: np.ndarray, horizon: int, ts: float
) -> tuple[np.ndarray, np.ndarray]:
    """Straight-line state interpolation with speeds from finite differences."""
    alpha = np.linspace(0.0, 1.0, horizon + 1)
    x_ws = x0[:, None] + (xf - x0)[:, None] * alpha[None, :]

    step = np.diff(x_ws[:2], axis=1)
    direction = np.sign(step[0] + 1e-12)
    x_ws[3, :-1] = direction * np.linalg.norm(step, axis=0) / ts
    x_ws[3, 0] = x0[3]
    x_ws[3, -1] = xf[3]

    u_ws = np.zeros((2, horizon))
    u_ws[1] = np.diff(x_ws[3]) / ts
    return x_ws, u_ws


def solve_parallel_parking_example(horizon: int = 40, ts: float = 0.5):
    """Solve the parallel parking problem."""
    from jaxobca.ipopt_driver import IpoptOptions, solve_distance_approach

    # Parked cars in front of and behind the slot
    rear_a, rear_b = box_obstacle(-9.0, -4.0, -1.0, 1.0)
    front_a, front_b = box_obstacle(4.0, 9.0, -1.0, 1.0)
    obstacles_a = np.vstack([rear_a, front_a])
    obstacles_b = np.concatenate([rear_b, front_b])
    edges = [4, 4]

    # Start beside the front car, park with the box centred in the slot
    center_offset = (EGO[0] + EGO[2]) / 2.0 - EGO[2]
    x0 = np.array([3.0, 3.0, 0.0, 0.0])
    xf = np.array([-center_offset, 0.0, 0.0, 0.0])

    x_ws, u_ws = create_warm_start(x0, xf, horizon, ts)
    stages = horizon + 1

    print("Setting up distance-approach parking problem...")
    print(f"  Horizon: {horizon} stages of {ts:.2f} s")
    print(f"  Start pose: {x0}")
    print(f"  Parking pose: {xf}")
    print(f"  Obstacles: {len(edges)} boxes")

    options = DistanceApproachOptions(
        max_speed_reverse=1.5,
        min_safety_distance=0.05,
        verbose=Verbosity.SUMMARY,
    )

    problem = DistanceApproachProblem(
        horizon=horizon,
        ts=ts,
        ego=EGO,
        x_ws=x_ws,
        u_ws=u_ws,
        l_warm_up=np.full((sum(edges), stages), 0.1),
        n_warm_up=np.full((4 * len(edges), stages), 0.1),
        x0=x0,
        xf=xf,
        last_time_u=np.zeros(2),
        xy_bounds=[-12.0, 12.0, -3.0, 8.0],
        obstacles_edges_num=edges,
        obstacles_num=len(edges),
        obstacles_a=obstacles_a,
        obstacles_b=obstacles_b,
        wheelbase=WHEELBASE,
        options=options,
    )

    info = problem.describe_structure()
    print(f"  Variables: {info.n}, constraints: {info.m}")
    print(f"  Jacobian nonzeros: {info.nnz_jac_g}, Hessian nonzeros: {info.nnz_h_lag}")

    print("\nSolving with IPOPT...")
    start_time = time.perf_counter()
    record, stats = solve_distance_approach(problem, IpoptOptions(max_iter=500))
    solve_time = time.perf_counter() - start_time

    print(f"\nSolve completed in {solve_time:.3f} seconds")
    print(f"Status: {record.status.name}")
    print(f"Iterations: {stats.iterations}")
    print(f"Final cost: {record.objective_value:.6f}")

    states, controls, time_scaling, _, _ = problem.get_optimization_results()
    print("\nTrajectory samples:")
    for k in [0, horizon // 4, horizon // 2, 3 * horizon // 4, horizon]:
        x, y, phi, v = states[:, k]
        print(f"  k={k:3d}: x={x:7.3f}, y={y:7.3f}, phi={phi:6.3f}, v={v:6.3f}")

    total_time = ts * float(np.sum(time_scaling[0, :-1]))
    print("\nValidation:")
    print(f"  Final pose error: {np.linalg.norm(states[:, -1] - xf):.2e}")
    print(f"  Maximum steering: {np.max(np.abs(controls[0])):.3f} rad")
    print(f"  Maneuver duration: {total_time:.2f} s")
    print(f"  Success: {record.is_success()}")

    return record


if __name__ == "__main__":
    """Run the parallel parking example."""

    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    print("JAX Distance-Approach Parallel Parking Example")
    print("=" * 50)

    solve_parallel_parking_example()
