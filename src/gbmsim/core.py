r"""

gbmsim.core
===========

Result container and scenario registry for GBM simulations.

This module provides:

* :class:`~gbmsim.core.SimulationResult` – the packaged outcome of one run.
* :class:`~gbmsim.core.SimulationFramework` – registry of named parameter sets
  (scenarios) that runs and compares them.

Data flows one way: :class:`~gbmsim.params.SimulationParameters` →
:class:`~gbmsim.simulation.Ensemble` →
:class:`~gbmsim.stats_engine.TerminalDistributionStats`. The result only holds
references to these values; nothing here performs I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from .params import SimulationParameters
from .simulation import Ensemble, GBMSimulation
from .stats_engine import TerminalDistributionStats

logger = logging.getLogger(__name__)

# Package-level handler so every gbmsim.* module logger is visible by default.
_pkg_logger = logging.getLogger(__package__)  # pragma: no cover
if not _pkg_logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    _pkg_logger.addHandler(handler)
    _pkg_logger.setLevel(logging.INFO)


@dataclass
class SimulationResult:
    r"""
    Container for the outcome of a GBM run.

    Attributes
    ----------
    params : SimulationParameters
        Inputs of the run.
    ensemble : Ensemble
        All simulated paths.
    stats : TerminalDistributionStats
        Mean, population std, extrema and 5th/95th percentiles of terminal prices.
    execution_time : float
        Wall-clock time of path generation in seconds.
    extra : dict
        Extended metrics from the stats engine (``skew``, ``ci_mean``,
        ``upside_probability``, ...). Empty when stats were disabled.
    metadata : dict
        Freeform metadata. Includes ``"simulation_name"``, ``"timestamp"``,
        ``"seed_entropy"``, ``"backend"`` and ``"n_workers"``.
    """

    params: SimulationParameters
    ensemble: Ensemble
    stats: TerminalDistributionStats
    execution_time: float
    extra: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def n_paths(self) -> int:
        return self.ensemble.n_paths

    def result_to_string(self, currency: str = "$", extended: bool = False) -> str:
        r"""
        Console report of the terminal-price statistics.

        Parameters
        ----------
        currency : str, default ``"$"``
            Symbol prefixed to every price.
        extended : bool, default ``False``
            Append the extended metrics from :attr:`extra`.

        Returns
        -------
        str
            Multiline summary; prices are shown with two decimals.
        """
        s = self.stats
        lines = [
            "Simulation Statistics (Final Stock Price):",
            "-" * 40,
            f"Mean: {currency}{s.mean:.2f}",
            f"Standard Deviation: {currency}{s.std:.2f}",
            f"Minimum: {currency}{s.minimum:.2f}",
            f"Maximum: {currency}{s.maximum:.2f}",
            f"5th Percentile: {currency}{s.percentile_5:.2f}",
            f"95th Percentile: {currency}{s.percentile_95:.2f}",
        ]
        if extended and self.extra:
            lines.append("Additional Stats:")
            ci = self.extra.get("ci_mean")
            if isinstance(ci, dict):
                lines.append(
                    f"  {round(ci['confidence'] * 100)}% {ci['method']}-CI of mean: "
                    f"[{currency}{ci['low']:.2f}, {currency}{ci['high']:.2f}]"
                )
            for k, v in self.extra.items():
                if k in ("ci_mean", "percentiles"):
                    continue
                lines.append(f"  {k}: {v:.4f}" if isinstance(v, float) else f"  {k}: {v}")
        return "\n".join(lines)


class SimulationFramework:
    r"""
    Registry of named scenarios that runs and compares results.

    Examples
    --------
    >>> fw = SimulationFramework()
    >>> fw.register_scenario("calm", SimulationParameters(100, 0.05, 0.1, 1, 252, 1000))
    >>> fw.register_scenario("wild", SimulationParameters(100, 0.05, 0.6, 1, 252, 1000))
    >>> _ = fw.run_scenario("calm", seed=1)  # doctest: +SKIP
    >>> _ = fw.run_scenario("wild", seed=1)  # doctest: +SKIP
    >>> fw.compare_results(["calm", "wild"], metric="std")  # doctest: +SKIP
    {'calm': 10.6, 'wild': 71.9}
    """

    _METRICS = ("mean", "std", "var", "se", "min", "max", "p5", "p95")

    def __init__(self, simulation: Optional[GBMSimulation] = None):
        self.simulation = simulation or GBMSimulation()
        self.scenarios: dict[str, SimulationParameters] = {}
        self.results: dict[str, SimulationResult] = {}

    def register_scenario(self, name: str, params: SimulationParameters) -> None:
        r"""
        Register ``params`` under ``name``, replacing any earlier entry.

        Raises
        ------
        TypeError
            If ``params`` is not a :class:`SimulationParameters`.
        """
        if not isinstance(params, SimulationParameters):
            raise TypeError("params must be SimulationParameters")
        self.scenarios[name] = params

    def run_scenario(self, name: str, *, seed: int | None = None, **kwargs) -> SimulationResult:
        r"""
        Run a registered scenario by name.

        Parameters
        ----------
        name : str
            Key used in :meth:`register_scenario`.
        seed : int, optional
            If given, reseed the shared simulation before running.
        **kwargs :
            Forwarded to :meth:`GBMSimulation.run`.
        """
        if name not in self.scenarios:
            raise ValueError(f"Scenario '{name}' not found")
        if seed is not None:
            self.simulation.set_seed(seed)
        logger.info("Running scenario '%s'", name)
        res = self.simulation.run(self.scenarios[name], **kwargs)
        res.metadata["scenario"] = name
        self.results[name] = res
        return res

    def compare_results(self, names: list[str], metric: str = "mean") -> dict[str, float]:
        r"""
        Compare a terminal-price metric across previously run scenarios.

        Parameters
        ----------
        names : list of str
            Scenario names (must exist in :attr:`results`).
        metric : {"mean","std","var","se","min","max","p5","p95"}, default ``"mean"``

        Returns
        -------
        dict
            ``{name: value}`` pairs.

        Raises
        ------
        ValueError
            If a scenario has no result or the metric is unknown.
        """
        if metric not in self._METRICS:
            raise ValueError(f"Unknown metric: {metric}")
        out: dict[str, float] = {}
        for name in names:
            if name not in self.results:
                raise ValueError(f"No results found for scenario '{name}'")
            s = self.results[name].stats
            if metric == "mean":
                out[name] = s.mean
            elif metric == "std":
                out[name] = s.std
            elif metric == "var":
                out[name] = s.std**2
            elif metric == "se":
                out[name] = s.std / np.sqrt(max(1, s.n_paths))
            elif metric == "min":
                out[name] = s.minimum
            elif metric == "max":
                out[name] = s.maximum
            elif metric == "p5":
                out[name] = s.percentile_5
            else:
                out[name] = s.percentile_95
        return out


__all__ = [
    "SimulationResult",
    "SimulationFramework",
]
