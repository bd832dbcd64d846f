r"""
GBM ensemble runner and orchestration logic.

This module provides:

Classes
    :class:`Ensemble`: Read-only collection of simulated paths
    :class:`GBMSimulation`: Seeded runner that produces ensembles and results

Functions
    :func:`run_simulation`: One-shot ensemble generation from parameters

The runner handles:

- Reproducible seeding via :class:`numpy.random.SeedSequence`
- Sequential and parallel execution (delegated to backends)
- Statistics computation via the stats engine
- Result assembly

Example
-------
>>> from gbmsim import SimulationParameters, run_simulation
>>> params = SimulationParameters(100.0, 0.08, 0.2, 1.0, 252, 1000)
>>> ensemble = run_simulation(params, seed=42)
>>> ensemble.paths.shape
(1000, 253)

See Also
--------
gbmsim.backends
    Execution backends for sequential and parallel execution.
gbmsim.stats_engine
    Terminal-price statistics.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterator

import numpy as np

from .backends import ProcessBackend, SequentialBackend, ThreadBackend, is_windows_platform
from .params import SimulationParameters
from .stats_engine import DEFAULT_ENGINE, StatsContext, StatsEngine, compute_statistics

if TYPE_CHECKING:
    from .core import SimulationResult

logger = logging.getLogger(__name__)

__all__ = ["Ensemble", "GBMSimulation", "run_simulation"]


@dataclass(frozen=True, eq=False)
class Ensemble:
    r"""
    Ordered, immutable collection of simulated price paths.

    Attributes
    ----------
    paths : numpy.ndarray
        Array of shape ``(n_paths, n_steps + 1)``; row ``k`` is path ``k`` and
        column ``i`` is the price at ``times[i]``. A writable array is copied, so
        the caller's array is left untouched; an array that is already
        read-only is shared as is.
    times : numpy.ndarray
        Time points of the columns, ``t_i = i * horizon / n_steps``. Defaults to
        the column index when omitted.
    """

    paths: np.ndarray
    times: np.ndarray = field(default=None)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        paths = np.asarray(self.paths, dtype=float)
        if paths.flags.writeable:
            # leave the caller's array writable and unaliased
            paths = paths.copy()
        if paths.ndim != 2:
            raise ValueError(f"paths must be 2-D (n_paths, n_steps + 1), got shape {paths.shape}")
        if paths.shape[1] == 0:
            raise ValueError("paths must contain at least one time point")
        if self.times is None:
            times = np.arange(paths.shape[1], dtype=float)
        else:
            times = np.array(self.times, dtype=float)
            if times.shape != (paths.shape[1],):
                raise ValueError(
                    f"times must have shape ({paths.shape[1]},) to match paths, got {times.shape}"
                )
        paths.flags.writeable = False
        times.flags.writeable = False
        object.__setattr__(self, "paths", paths)
        object.__setattr__(self, "times", times)

    @property
    def n_paths(self) -> int:
        return int(self.paths.shape[0])

    @property
    def n_steps(self) -> int:
        return int(self.paths.shape[1] - 1)

    @property
    def terminal_values(self) -> np.ndarray:
        """Price of every path at the final time point."""
        return self.paths[:, -1]

    def __len__(self) -> int:
        return self.n_paths

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.paths)

    def __getitem__(self, index: int) -> np.ndarray:
        return self.paths[index]


class GBMSimulation:
    r"""
    Seeded runner for geometric Brownian motion ensembles.

    The runner owns the random source: a :class:`numpy.random.SeedSequence` and the
    generator built from it. Call :meth:`set_seed` for reproducible runs; without
    it, entropy is drawn from the OS and recorded in the result metadata so the
    run can still be replayed.

    Examples
    --------
    >>> sim = GBMSimulation()
    >>> sim.set_seed(42)
    >>> params = SimulationParameters(100.0, 0.08, 0.2, 1.0, 252, 1000)
    >>> res = sim.run(params)  # doctest: +SKIP
    >>> print(res.result_to_string())  # doctest: +SKIP

    Notes
    -----
    **Backends.** ``"sequential"`` advances the runner's single generator across all
    paths in path-major order. ``"thread"`` and ``"process"`` spawn one child seed
    per block of paths, so their output depends on the seed *and* the worker count,
    and differs from the sequential stream for the same seed.

    **Repeated runs.** Each run advances the generator (and spawns fresh children),
    so two runs on the same instance differ unless :meth:`set_seed` is called again.
    """

    # Minimum path-steps (n_paths * n_steps) for "auto" to go parallel
    _PARALLEL_THRESHOLD = 2_000_000
    # Number of chunks per worker for load balancing
    _CHUNKS_PER_WORKER = 8
    _VALID_BACKENDS = ("auto", "sequential", "thread", "process")

    def __init__(self, name: str = "GBM Simulation"):
        self.name = name
        self.backend: str = "auto"
        self.set_seed(None)

    def __getstate__(self):
        """Avoid pickling the generator; it is rebuilt from the seed sequence."""
        state = self.__dict__.copy()
        state["rng"] = None
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self.rng = np.random.default_rng(self.seed_seq)

    def set_seed(self, seed: int | None) -> None:
        r"""
        Set the random seed for reproducible runs.

        Parameters
        ----------
        seed : int or None
            Seed for :class:`numpy.random.SeedSequence`. :data:`None` chooses entropy
            from the OS.
        """
        self.seed_seq = np.random.SeedSequence(seed)
        self.rng = np.random.default_rng(self.seed_seq)

    def _validate_run_params(
        self,
        backend: str,
        n_workers: int | None,
        confidence: float = 0.95,
        ci_method: str = "auto",
    ) -> None:
        if backend not in self._VALID_BACKENDS:
            raise ValueError(f"backend must be one of {self._VALID_BACKENDS}, got '{backend}'")
        if n_workers is not None and n_workers <= 0:
            raise ValueError("n_workers must be positive")
        if not 0.0 < confidence < 1.0:
            raise ValueError("confidence must be in the interval (0, 1)")
        if ci_method not in ("auto", "z", "t"):
            raise ValueError(f"ci_method must be one of 'auto', 'z', 't', got '{ci_method}'")

    def _resolve_backend(
        self, backend: str, n_workers: int | None, params: SimulationParameters
    ) -> tuple[str, int]:
        """Map ``"auto"`` to a concrete backend and fix the worker count."""
        if n_workers is None:
            n_workers = 1 if backend == "sequential" else mp.cpu_count()

        if backend == "auto":
            work = params.n_paths * params.n_steps
            if n_workers <= 1 or work < self._PARALLEL_THRESHOLD:
                return "sequential", 1
            on_windows = is_windows_platform()
            if on_windows:
                logger.info("Backend 'auto' resolved to 'process' on Windows platform.")
            return ("process" if on_windows else "thread"), n_workers

        return backend, (1 if backend == "sequential" else n_workers)

    def _create_backend(
        self, backend: str, n_workers: int
    ) -> SequentialBackend | ThreadBackend | ProcessBackend:
        if backend == "sequential":
            return SequentialBackend()
        if backend == "thread":
            return ThreadBackend(n_workers=n_workers, chunks_per_worker=self._CHUNKS_PER_WORKER)
        return ProcessBackend(n_workers=n_workers, chunks_per_worker=self._CHUNKS_PER_WORKER)

    def _simulate(
        self,
        params: SimulationParameters,
        backend: str | None,
        n_workers: int | None,
        progress_callback: Callable[[int, int], None] | None,
    ) -> tuple[Ensemble, str, int]:
        if not isinstance(params, SimulationParameters):
            raise TypeError(
                f"params must be SimulationParameters, got {type(params).__name__}"
            )
        requested = backend or self.backend
        self._validate_run_params(requested, n_workers)
        resolved, workers = self._resolve_backend(requested, n_workers, params)

        if resolved == "sequential":
            logger.info(
                "Simulating %d paths x %d steps sequentially...", params.n_paths, params.n_steps
            )
        else:
            logger.info(
                "Simulating %d paths x %d steps using %s backend with %d workers...",
                params.n_paths, params.n_steps, resolved, workers,
            )

        runner = self._create_backend(resolved, workers)
        paths = runner.run(params, self.rng, self.seed_seq, progress_callback)
        paths.flags.writeable = False  # hand ownership to the ensemble without a copy
        ensemble = Ensemble(paths, params.time_grid())

        n_bad = int(np.count_nonzero(~np.isfinite(ensemble.terminal_values)))
        if n_bad:
            logger.warning(
                "%d of %d terminal prices are not finite (floating-point overflow); "
                "statistics will propagate inf/nan",
                n_bad, ensemble.n_paths,
            )
        return ensemble, resolved, workers

    def simulate(
        self,
        params: SimulationParameters,
        *,
        backend: str | None = None,
        n_workers: int | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Ensemble:
        r"""
        Generate the ensemble for ``params`` without computing statistics.

        Parameters
        ----------
        params : SimulationParameters
            Validated run parameters.
        backend : {"auto", "sequential", "thread", "process"}, optional
            Execution backend; defaults to :attr:`backend`.
        n_workers : int, optional
            Worker count for parallel backends. Defaults to CPU count.
        progress_callback : callable, optional
            A function ``f(completed_paths: int, total_paths: int)``.

        Returns
        -------
        Ensemble
        """
        ensemble, _, _ = self._simulate(params, backend, n_workers, progress_callback)
        return ensemble

    def run(
        self,
        params: SimulationParameters,
        *,
        backend: str | None = None,
        n_workers: int | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
        compute_stats: bool = True,
        stats_engine: StatsEngine | None = None,
        confidence: float = 0.95,
        ci_method: str = "auto",
    ) -> "SimulationResult":
        r"""
        Simulate, reduce and package one run.

        Parameters
        ----------
        params : SimulationParameters
            Validated run parameters.
        backend : {"auto", "sequential", "thread", "process"}, optional
            Execution backend; defaults to :attr:`backend` (``"auto"``):

            - ``"auto"``: Sequential for small jobs, thread/process for large jobs
            - ``"sequential"``: One generator, canonical draw order
            - ``"thread"``: Thread-based parallelism
            - ``"process"``: Process-based parallelism

        n_workers : int, optional
            Worker count for parallel backends. Defaults to CPU count.
        progress_callback : callable, optional
            A function ``f(completed_paths: int, total_paths: int)``.
        compute_stats : bool, default ``True``
            Also evaluate the extended metrics of ``stats_engine`` into
            :attr:`SimulationResult.extra`. The core terminal statistics are always
            computed.
        stats_engine : StatsEngine, optional
            Custom engine (defaults to ``gbmsim.stats_engine.DEFAULT_ENGINE``).
        confidence : float, default ``0.95``
            Confidence level for the mean CI.
        ci_method : {"auto", "z", "t"}, default ``"auto"``
            Critical-value strategy for the mean CI.

        Returns
        -------
        SimulationResult
            See :class:`~gbmsim.core.SimulationResult`.
        """
        self._validate_run_params(backend or self.backend, n_workers, confidence, ci_method)

        t0 = time.perf_counter()
        ensemble, resolved, workers = self._simulate(params, backend, n_workers, progress_callback)
        exec_time = time.perf_counter() - t0

        stats = compute_statistics(ensemble)
        extra = {}
        if compute_stats:
            eng = stats_engine or DEFAULT_ENGINE
            ctx = StatsContext(
                n=ensemble.n_paths,
                confidence=confidence,
                ci_method=ci_method,
                target=params.initial_price,
            )
            extra = eng.compute(ensemble.terminal_values, ctx)

        return self._create_result(params, ensemble, stats, extra, exec_time, resolved, workers)

    def _create_result(self, params, ensemble, stats, extra, execution_time, backend, n_workers):
        # Import here to avoid circular dependency
        from .core import SimulationResult  # pylint: disable=import-outside-toplevel

        meta = {
            "simulation_name": self.name,
            "timestamp": time.time(),
            "seed_entropy": self.seed_seq.entropy,
            "backend": backend,
            "n_workers": n_workers,
        }
        return SimulationResult(
            params=params,
            ensemble=ensemble,
            stats=stats,
            execution_time=execution_time,
            extra=extra,
            metadata=meta,
        )


def run_simulation(
    params: SimulationParameters,
    *,
    seed: int | None = None,
    backend: str = "sequential",
    n_workers: int | None = None,
    progress_callback: Callable[[int, int], None] | None = None,
) -> Ensemble:
    r"""
    Generate ``params.n_paths`` independent GBM paths.

    Parameters
    ----------
    params : SimulationParameters
        Validated run parameters.
    seed : int, optional
        Run seed. The same seed, parameters, backend and worker count reproduce
        bit-identical paths. :data:`None` draws OS entropy.
    backend : {"sequential", "thread", "process", "auto"}, default ``"sequential"``
        Execution backend. The sequential backend reproduces the canonical draw
        order (one generator, path-major).
    n_workers : int, optional
        Worker count for parallel backends.
    progress_callback : callable, optional
        A function ``f(completed_paths: int, total_paths: int)``.

    Returns
    -------
    Ensemble
    """
    sim = GBMSimulation()
    sim.set_seed(seed)
    return sim.simulate(
        params, backend=backend, n_workers=n_workers, progress_callback=progress_callback
    )
