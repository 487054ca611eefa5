"""
Example convergence logs for the remltrace package.
"""

import pandas as pd
import numpy as np
from typing import Optional, Sequence


def _loglik_quadratic(params: np.ndarray, target: np.ndarray, scale: np.ndarray,
                      loglik_max: float) -> np.ndarray:
    """Concave quadratic log-likelihood with its maximum at target."""
    return loglik_max - 0.5 * np.sum(((params - target) / scale) ** 2, axis=1)


def generate_convergence_log(
    n_iter: int = 25,
    n_components: int = 2,
    start: Optional[Sequence[float]] = None,
    target: Optional[Sequence[float]] = None,
    residual_start: float = 40.0,
    residual_target: float = 25.0,
    rate: float = 0.35,
    loglik_max: float = -1240.0,
    noise: float = 0.0,
    n_decreases: int = 0,
    oscillate: bool = False,
    seed: Optional[int] = None
) -> pd.DataFrame:
    """
    Generate a synthetic REML convergence log.

    Parameters approach their targets geometrically, each component at a
    slightly different rate so the path is curved in parameter space. The
    log-likelihood is a concave quadratic in the parameters, so it rises
    monotonically unless perturbed.

    Parameters
    ----------
    n_iter : int, default=25
        Number of iterations
    n_components : int, default=2
        Number of variance components (named sigma2_1, sigma2_2, ...)
    start, target : sequence of float, optional
        Starting and final component values
    residual_start, residual_target : float
        Starting and final residual variance
    rate : float, default=0.35
        Fraction of the remaining distance covered per iteration
    loglik_max : float, default=-1240.0
        Log-likelihood at the target
    noise : float, default=0.0
        Standard deviation of noise added to the log-likelihood
    n_decreases : int, default=0
        Number of iterations (chosen at random, never the first) at which
        the log-likelihood is pushed below its predecessor
    oscillate : bool, default=False
        Overshoot the targets so components change direction each step
    seed : int, optional
        Random seed

    Returns
    -------
    pd.DataFrame
        Columns iteration, sigma2_1..sigma2_k, residual, loglik

    Examples
    --------
    >>> log = generate_convergence_log(n_iter=10, seed=1)
    >>> log.columns.tolist()
    ['iteration', 'sigma2_1', 'sigma2_2', 'residual', 'loglik']
    """
    if n_iter < 2:
        raise ValueError("n_iter must be >= 2")
    if n_components < 1:
        raise ValueError("n_components must be >= 1")
    rng = np.random.default_rng(seed)

    if start is None:
        start = [5.0 * (k + 1) for k in range(n_components)]
    if target is None:
        target = [20.0 + 15.0 * k for k in range(n_components)]
    start = np.append(np.asarray(start, dtype=float), residual_start)
    target = np.append(np.asarray(target, dtype=float), residual_target)
    if len(start) != n_components + 1 or len(target) != n_components + 1:
        raise ValueError("start and target must have n_components values")

    rates = rate * (1.0 + 0.25 * np.arange(n_components + 1) / max(n_components, 1))
    rates = np.clip(rates, 0.01, 0.95)

    steps = np.arange(n_iter)[:, None]
    if oscillate:
        # overshoot: remaining distance flips sign every iteration
        params = target + (start - target) * (-(1.0 - rates)) ** steps
    else:
        params = target + (start - target) * (1.0 - rates) ** steps

    scale = np.maximum(np.abs(start - target), 1.0)
    loglik = _loglik_quadratic(params, target, scale, loglik_max)
    if noise > 0:
        loglik = loglik + rng.normal(0, noise, n_iter)

    if n_decreases > 0:
        candidates = np.arange(1, n_iter)
        picks = rng.choice(candidates, size=min(n_decreases, len(candidates)), replace=False)
        for i in sorted(picks):
            loglik[i] = loglik[i - 1] - rng.uniform(0.5, 2.0)

    data = {'iteration': np.arange(1, n_iter + 1)}
    for k in range(n_components):
        data[f'sigma2_{k + 1}'] = params[:, k]
    data['residual'] = params[:, -1]
    data['loglik'] = loglik
    return pd.DataFrame(data)


def likelihood_grid_points(n: int = 200, bimodal: bool = False,
                           seed: Optional[int] = None) -> pd.DataFrame:
    """
    Scattered samples of a two-parameter log-likelihood surface.

    Parameters
    ----------
    n : int, default=200
        Number of sampled points
    bimodal : bool, default=False
        Use a surface with two separated maxima instead of one
    seed : int, optional
        Random seed

    Returns
    -------
    pd.DataFrame
        Columns sigma2_1, sigma2_2, loglik
    """
    rng = np.random.default_rng(seed)
    x = rng.uniform(0.0, 100.0, n)
    y = rng.uniform(0.0, 100.0, n)
    loglik = likelihood_function(x, y, bimodal=bimodal)
    return pd.DataFrame({'sigma2_1': x, 'sigma2_2': y, 'loglik': loglik})


def likelihood_function(x, y, bimodal: bool = False):
    """Reference log-likelihood over [0, 100]^2 with one or two peaks."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if not bimodal:
        return -1240.0 - 0.5 * (((x - 45.0) / 20.0) ** 2 + ((y - 55.0) / 25.0) ** 2)
    peak1 = 12.0 * np.exp(-(((x - 25.0) / 14.0) ** 2 + ((y - 30.0) / 14.0) ** 2))
    peak2 = 9.0 * np.exp(-(((x - 75.0) / 14.0) ** 2 + ((y - 70.0) / 14.0) ** 2))
    return -1255.0 + peak1 + peak2 - 0.0005 * ((x - 50.0) ** 2 + (y - 50.0) ** 2)


def create_toy_log() -> pd.DataFrame:
    """
    Small fixed convergence log for quick examples.

    Returns
    -------
    pd.DataFrame
        Five iterations with two variance components, a residual and a
        monotonically increasing log-likelihood
    """
    return pd.DataFrame({
        'iteration': [1, 2, 3, 4, 5],
        'sigma2_g': [10.0, 14.2, 16.1, 16.8, 16.9],
        'sigma2_b': [5.0, 3.9, 3.4, 3.3, 3.28],
        'residual': [40.0, 33.5, 31.2, 30.6, 30.5],
        'loglik': [-1250.5, -1245.2, -1240.1, -1239.8, -1239.79],
    })


def load_example_log() -> pd.DataFrame:
    """
    Default example log: 25 iterations, two variance components.

    Examples
    --------
    >>> from remltrace import ConvergenceTrace
    >>> trace = ConvergenceTrace(load_example_log())
    >>> trace.diagnose().nonmonotonic
    False
    """
    return generate_convergence_log(n_iter=25, n_components=2, seed=42)
