# processes.py
# Path generator feeding the Longstaff-Schwartz demos and tests.
# Returns an array of shape (n_steps+1, n_paths_eff) whose first row is S0;
# with antithetic=True the path count doubles (n_paths_eff = 2 * n_paths).

from __future__ import annotations

from typing import Optional

import numpy as np


__all__ = ["gbm_paths"]


def gbm_paths(
    S0: float, r: float, q: float, sigma: float,
    T: float, n_steps: int, n_paths: int,
    *, antithetic: bool = True, seed: Optional[int] = None
) -> np.ndarray:
    """
    Exact-discretisation GBM under Q:
        S_{t+dt} = S_t * exp((r - q - 0.5*sigma^2) dt + sigma * sqrt(dt) * Z)
    """
    if n_steps <= 0 or n_paths <= 0:
        raise ValueError("n_steps and n_paths must be positive.")
    if sigma < 0:
        raise ValueError(f"sigma must be non-negative, got {sigma}")

    rng = np.random.default_rng(seed)
    dt = T / n_steps
    Z = rng.standard_normal((n_steps, n_paths))
    if antithetic:
        Z = np.concatenate([Z, -Z], axis=1)

    log_paths = np.cumsum((r - q - 0.5 * sigma * sigma) * dt
                          + sigma * np.sqrt(dt) * Z, axis=0)
    first = np.zeros((1, Z.shape[1]))
    return S0 * np.exp(np.vstack([first, log_paths]))
