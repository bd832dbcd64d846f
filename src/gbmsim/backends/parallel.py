r"""
Parallel execution backends for GBM path generation.

This module provides:

Classes
    :class:`ThreadBackend`: Thread-based parallelism using ThreadPoolExecutor
    :class:`ProcessBackend`: Process-based parallelism using ProcessPoolExecutor

Both split the paths into blocks and give each block its own generator built from
a child of the run's :class:`numpy.random.SeedSequence`. Each block writes a
disjoint row range of the output, so workers share no mutable state.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Callable

import numpy as np

from ..params import SimulationParameters
from .base import make_blocks, worker_run_chunk

logger = logging.getLogger(__name__)

__all__ = [
    "ThreadBackend",
    "ProcessBackend",
]

# Default configuration constants
_CHUNKS_PER_WORKER = 8  # Number of chunks per worker for load balancing


class _BlockBackend:
    """Shared block layout and seeding for the pool backends."""

    def __init__(self, n_workers: int, chunks_per_worker: int = _CHUNKS_PER_WORKER):
        if n_workers <= 0:
            raise ValueError("n_workers must be positive")
        if chunks_per_worker <= 0:
            raise ValueError("chunks_per_worker must be positive")
        self.n_workers = n_workers
        self.chunks_per_worker = chunks_per_worker

    def _prepare_blocks(
        self, n_paths: int, seed_seq: np.random.SeedSequence
    ) -> tuple[list[tuple[int, int]], list[np.random.SeedSequence]]:
        """Prepare work blocks and one independent child seed per block."""
        block_size = max(1, n_paths // (self.n_workers * self.chunks_per_worker))
        blocks = make_blocks(n_paths, block_size)
        child_seqs = seed_seq.spawn(len(blocks))
        logger.debug(
            "Split %d paths into %d blocks of up to %d paths", n_paths, len(blocks), block_size
        )
        return blocks, child_seqs


class ThreadBackend(_BlockBackend):
    r"""
    Thread-based parallel execution backend.

    Uses :class:`concurrent.futures.ThreadPoolExecutor`. Effective because NumPy's
    generators and ufuncs release the GIL.

    Parameters
    ----------
    n_workers : int
        Number of worker threads to use.
    chunks_per_worker : int, default 8
        Number of work chunks per worker for load balancing.

    Notes
    -----
    Output is reproducible for a fixed seed **and** a fixed ``n_workers`` /
    ``chunks_per_worker``, since those determine the block layout.

    Examples
    --------
    >>> backend = ThreadBackend(n_workers=4)
    >>> paths = backend.run(params, rng, seed_seq, progress_callback=None)  # doctest: +SKIP
    """

    def run(
        self,
        params: SimulationParameters,
        _rng: np.random.Generator,
        seed_seq: np.random.SeedSequence,
        progress_callback: Callable[[int, int], None] | None,
    ) -> np.ndarray:
        r"""
        Generate paths in parallel using threads.

        Parameters
        ----------
        params : SimulationParameters
            Validated run parameters.
        seed_seq : SeedSequence
            Run seed sequence; one child is spawned per block.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        np.ndarray
            Array of shape ``(n_paths, n_steps + 1)``.
        """
        n_paths = params.n_paths
        blocks, child_seqs = self._prepare_blocks(n_paths, seed_seq)
        paths = np.empty((n_paths, params.n_steps + 1), dtype=float)
        completed = 0
        max_workers = min(self.n_workers, len(blocks))

        def _work(args):
            (a, b), ss = args
            return (a, b), worker_run_chunk(params, b - a, ss)

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futs = [ex.submit(_work, (blk, ss)) for blk, ss in zip(blocks, child_seqs)]
            for f in as_completed(futs):
                (i, j), arr = f.result()
                paths[i:j] = arr
                completed += j - i
                if progress_callback:
                    progress_callback(completed, n_paths)

        return paths


class ProcessBackend(_BlockBackend):
    r"""
    Process-based parallel execution backend.

    Uses :class:`concurrent.futures.ProcessPoolExecutor` with the ``spawn`` context.
    Preferred on Windows, where threads tend to serialize.

    Parameters
    ----------
    n_workers : int
        Number of worker processes to use.
    chunks_per_worker : int, default 8
        Number of work chunks per worker for load balancing.

    Notes
    -----
    Workers receive only the frozen parameters and a child seed sequence, both
    pickleable. The block layout, and therefore the output, matches
    :class:`ThreadBackend` for the same seed and worker count.

    Examples
    --------
    >>> backend = ProcessBackend(n_workers=4)
    >>> paths = backend.run(params, rng, seed_seq, progress_callback=None)  # doctest: +SKIP
    """

    def run(
        self,
        params: SimulationParameters,
        _rng: np.random.Generator,
        seed_seq: np.random.SeedSequence,
        progress_callback: Callable[[int, int], None] | None,
    ) -> np.ndarray:
        r"""
        Generate paths in parallel using processes.

        Parameters
        ----------
        params : SimulationParameters
            Validated run parameters.
        seed_seq : SeedSequence
            Run seed sequence; one child is spawned per block.
        progress_callback : callable or None
            Optional callback ``f(completed, total)`` for progress reporting.

        Returns
        -------
        np.ndarray
            Array of shape ``(n_paths, n_steps + 1)``.
        """
        n_paths = params.n_paths
        blocks, child_seqs = self._prepare_blocks(n_paths, seed_seq)
        paths = np.empty((n_paths, params.n_steps + 1), dtype=float)
        completed = 0
        max_workers = min(self.n_workers, len(blocks))

        with ProcessPoolExecutor(
            max_workers=max_workers,
            mp_context=mp.get_context("spawn"),
        ) as ex:
            futs = []
            for (i, j), ss in zip(blocks, child_seqs):
                f = ex.submit(worker_run_chunk, params, j - i, ss)
                f.blk = (i, j)  # type: ignore[attr-defined]
                futs.append(f)
            try:
                for f in as_completed(futs):
                    i, j = f.blk  # type: ignore[attr-defined]
                    paths[i:j] = f.result()
                    completed += j - i
                    if progress_callback:
                        progress_callback(completed, n_paths)
            except KeyboardInterrupt:  # pragma: no cover
                for f in futs:
                    f.cancel()
                raise

        return paths
