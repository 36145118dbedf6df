from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

import numpy as np
from scipy.optimize import minimize as _scipy_minimize


@dataclass(frozen=True)
class SimplexResult:
    params: np.ndarray
    iterations: int
    converged: bool
    value: float = float("nan")


class Minimizer(Protocol):
    def __call__(
        self,
        initial_params: Sequence[float],
        step_sizes: Sequence[float],
        objective: Callable[[np.ndarray], float],
        max_iterations: int,
        tolerance: float,
    ) -> SimplexResult: ...


def minimize(
    initial_params: Sequence[float],
    step_sizes: Sequence[float],
    objective: Callable[[np.ndarray], float],
    max_iterations: int = 200,
    tolerance: float = 1e-5,
) -> SimplexResult:
    """
    Derivative-free Nelder-Mead search (SciPy backend).

    The initial simplex is x0 plus one vertex per coordinate displaced by its
    step size. Convergence is declared when the objective values across the
    simplex agree to within `tolerance`; the parameter-space test is disabled
    because step sizes differ by orders of magnitude between coordinates.
    """
    x0 = np.asarray(initial_params, dtype=np.float64).reshape(-1)
    steps = np.asarray(step_sizes, dtype=np.float64).reshape(-1)
    if steps.shape != x0.shape:
        raise ValueError("step_sizes must match initial_params")
    if np.any(steps == 0.0):
        raise ValueError("step sizes must be non-zero")

    initial_simplex = np.vstack([x0, x0[None, :] + np.diag(steps)])
    res = _scipy_minimize(
        lambda p: float(objective(np.asarray(p, dtype=np.float64))),
        x0,
        method="Nelder-Mead",
        options={
            "initial_simplex": initial_simplex,
            "maxiter": int(max_iterations),
            "maxfev": None,
            "xatol": np.inf,
            "fatol": float(tolerance),
        },
    )
    return SimplexResult(
        params=np.asarray(res.x, dtype=np.float64),
        iterations=int(res.nit),
        converged=bool(res.success),
        value=float(res.fun),
    )
