r"""
gbmsim.params
=============

Immutable simulation parameters for geometric Brownian motion runs.

This module defines :class:`SimulationParameters`, the single input value of the
path generator and the ensemble runner. All invariants are checked once, on
construction, so downstream code never re-validates.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from numbers import Integral, Real

import numpy as np

__all__ = ["SimulationParameters"]


def _check_real(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(f"{name} must be a real number, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}")
    return value


def _check_count(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    value = int(value)
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")
    return value


@dataclass(frozen=True)
class SimulationParameters:
    r"""
    Parameters of one GBM simulation run.

    The asset follows

    .. math::
       dS_t = \mu S_t\,dt + \sigma S_t\,dW_t,

    sampled on the uniform grid :math:`t_i = i\,T/N`, :math:`i = 0, \dots, N`.

    Attributes
    ----------
    initial_price : float
        Starting price :math:`S_0`, strictly positive.
    drift : float
        Annualized expected return :math:`\mu`.
    volatility : float
        Annualized volatility :math:`\sigma`, non-negative.
    horizon : float
        Time period :math:`T` in years, strictly positive.
    n_steps : int
        Number of discrete time increments :math:`N \ge 1`.
    n_paths : int
        Number of independent trajectories, at least one.

    Raises
    ------
    ValueError
        If a value violates its range. Values are never clamped.
    TypeError
        If a count is not an integer or a real field is not numeric.

    Examples
    --------
    >>> p = SimulationParameters(100.0, 0.08, 0.2, 1.0, 252, 1000)
    >>> round(p.dt, 6)
    0.003968
    """

    initial_price: float
    drift: float
    volatility: float
    horizon: float
    n_steps: int
    n_paths: int

    def __post_init__(self) -> None:
        initial_price = _check_real("initial_price", self.initial_price)
        drift = _check_real("drift", self.drift)
        volatility = _check_real("volatility", self.volatility)
        horizon = _check_real("horizon", self.horizon)
        n_steps = _check_count("n_steps", self.n_steps)
        n_paths = _check_count("n_paths", self.n_paths)

        if initial_price <= 0.0:
            raise ValueError(f"initial_price must be positive, got {initial_price}")
        if volatility < 0.0:
            raise ValueError(f"volatility must be non-negative, got {volatility}")
        if horizon <= 0.0:
            raise ValueError(f"horizon must be positive, got {horizon}")

        # normalise numpy scalars and ints-as-floats
        object.__setattr__(self, "initial_price", initial_price)
        object.__setattr__(self, "drift", drift)
        object.__setattr__(self, "volatility", volatility)
        object.__setattr__(self, "horizon", horizon)
        object.__setattr__(self, "n_steps", n_steps)
        object.__setattr__(self, "n_paths", n_paths)

    @property
    def dt(self) -> float:
        """Length of one time step, ``horizon / n_steps``."""
        return self.horizon / self.n_steps

    def time_grid(self) -> np.ndarray:
        r"""
        Time points :math:`t_i = i \cdot T / N` for :math:`i = 0, \dots, N`.

        Returns
        -------
        numpy.ndarray
            Array of shape ``(n_steps + 1,)``.
        """
        return np.arange(self.n_steps + 1, dtype=float) * self.dt

    def with_overrides(self, **changes) -> "SimulationParameters":
        """Return a validated copy with selected fields replaced."""
        return replace(self, **changes)
