r"""
gbmsim.paths
============

Single-path generator for geometric Brownian motion.

The solution of

.. math::
   dS_t = \mu S_t\,dt + \sigma S_t\,dW_t

is :math:`S_t = S_0 \exp\left((\mu - \tfrac{1}{2}\sigma^2)t + \sigma W_t\right)`.
Applying it over one step of length :math:`\Delta t` gives the exact transition

.. math::
   S_{t_{k+1}} = S_{t_k} \exp\left((\mu - \tfrac{1}{2}\sigma^2)\Delta t
   + \sigma \sqrt{\Delta t}\,Z_k\right), \qquad Z_k \sim \mathcal{N}(0, 1),

so the discretisation carries no bias at the grid points.
"""

from __future__ import annotations

import numpy as np
from numpy.random import Generator

from .params import SimulationParameters

__all__ = ["generate_path", "generate_block"]


def _step_terms(params: SimulationParameters) -> tuple[float, float]:
    dt = params.dt
    drift_term = (params.drift - 0.5 * params.volatility * params.volatility) * dt
    vol_term = params.volatility * np.sqrt(dt)
    return drift_term, float(vol_term)


def generate_path(params: SimulationParameters, rng: Generator) -> np.ndarray:
    r"""
    Simulate one GBM trajectory on the parameter time grid.

    Parameters
    ----------
    params : SimulationParameters
        Validated run parameters.
    rng : numpy.random.Generator
        Random source shared by the caller. Exactly ``n_steps`` standard normal
        draws are consumed, including when ``volatility == 0``, so the stream
        position does not depend on the volatility.

    Returns
    -------
    numpy.ndarray
        Array of shape ``(n_steps + 1,)`` with ``path[0] == initial_price``.

    Notes
    -----
    The recurrence ``price[i] = price[i-1] * exp(...)`` is evaluated with a
    running product, one multiplication per step. Overflow of the exponential
    yields ``inf`` rather than an exception.
    """
    drift_term, vol_term = _step_terms(params)
    z = rng.standard_normal(params.n_steps)
    with np.errstate(over="ignore"):
        growth = np.exp(drift_term + vol_term * z)
        return np.cumprod(np.concatenate(([params.initial_price], growth)))


def generate_block(params: SimulationParameters, n_paths: int, rng: Generator) -> np.ndarray:
    """
    Generate ``n_paths`` consecutive paths from one generator.

    Paths are drawn in path-major order, so the result equals ``n_paths``
    successive calls to :func:`generate_path` with the same ``rng``.

    Returns
    -------
    numpy.ndarray
        Array of shape ``(n_paths, n_steps + 1)``.
    """
    out = np.empty((n_paths, params.n_steps + 1), dtype=float)
    for k in range(n_paths):
        out[k] = generate_path(params, rng)
    return out
