r"""
Sequential execution backend for GBM path generation.

This module provides the reference single-threaded strategy: one generator is
advanced across every step of every path, in path-major order.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from ..params import SimulationParameters
from ..paths import generate_path

__all__ = ["SequentialBackend"]


class SequentialBackend:
    r"""
    Sequential (single-threaded) execution backend.

    Draw order is fully determined: path 0 steps 1..N, then path 1, and so on.
    Given the same seeded generator the output is bit-identical across runs.

    Examples
    --------
    >>> backend = SequentialBackend()
    >>> paths = backend.run(params, rng, seed_seq, progress_callback=None)  # doctest: +SKIP
    """

    def run(
        self,
        params: SimulationParameters,
        rng: np.random.Generator,
        _seed_seq: np.random.SeedSequence,
        progress_callback: Callable[[int, int], None] | None,
    ) -> np.ndarray:
        r"""
        Generate all paths on the calling thread.

        Parameters
        ----------
        params : SimulationParameters
            Validated run parameters.
        rng : numpy.random.Generator
            The one random source advanced across the whole run.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        np.ndarray
            Array of shape ``(n_paths, n_steps + 1)``.
        """
        n_paths = params.n_paths
        paths = np.empty((n_paths, params.n_steps + 1), dtype=float)
        # Report progress every 1% of paths
        step = max(1, n_paths // 100)

        for i in range(n_paths):
            paths[i] = generate_path(params, rng)
            if progress_callback and (((i + 1) % step == 0) or (i + 1 == n_paths)):
                progress_callback(i + 1, n_paths)

        return paths
