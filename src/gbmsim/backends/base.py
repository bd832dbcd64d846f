r"""
Base classes and utilities for execution backends.

This module provides:

Protocol
    :class:`ExecutionBackend`: Interface for path generation strategies

Functions
    :func:`make_blocks`: Chunking helper for parallel work distribution
    :func:`worker_run_chunk`: Top-level worker for process-based parallelism

Helpers
    :func:`is_windows_platform`: Platform detection for backend selection
"""

from __future__ import annotations

import sys
from typing import Callable, Protocol

import numpy as np

from ..params import SimulationParameters
from ..paths import generate_block

__all__ = [
    "ExecutionBackend",
    "make_blocks",
    "worker_run_chunk",
    "is_windows_platform",
]


def is_windows_platform() -> bool:
    """Return True when running on a Windows platform."""
    return sys.platform.startswith("win") or (sys.platform == "cli")


def make_blocks(n: int, block_size: int = 10_000) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of items.
    block_size : int, default: 10_000
        Target block length.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    if block_size <= 0:
        raise ValueError("block_size must be positive")
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


def worker_run_chunk(
    params: SimulationParameters,
    chunk_size: int,
    seed_seq: np.random.SeedSequence,
) -> np.ndarray:
    r"""
    Generate a block of paths in a **separate worker**.

    Parameters
    ----------
    params : SimulationParameters
        Run parameters (frozen dataclass, pickleable).
    chunk_size : int
        Number of paths to generate in this worker.
    seed_seq : :class:`numpy.random.SeedSequence`
        Child seed sequence owned by this block.

    Returns
    -------
    numpy.ndarray
        Array of shape ``(chunk_size, n_steps + 1)``.

    Notes
    -----
    Uses :class:`numpy.random.Philox` to build a deterministic, independent stream
    per block, so the output depends only on the run seed and the block index.
    """
    local_rng = np.random.Generator(np.random.Philox(seed_seq))
    return generate_block(params, chunk_size, local_rng)


class ExecutionBackend(Protocol):
    r"""
    Protocol defining the interface for execution backends.

    Backends turn a :class:`~gbmsim.params.SimulationParameters` value into the
    raw ``(n_paths, n_steps + 1)`` price array. They own the random-source policy
    (one shared generator, or one spawned stream per block) and progress reporting.
    """

    def run(
        self,
        params: SimulationParameters,
        rng: np.random.Generator,
        seed_seq: np.random.SeedSequence,
        progress_callback: Callable[[int, int], None] | None,
    ) -> np.ndarray:
        r"""
        Generate all paths for ``params``.

        Parameters
        ----------
        params : SimulationParameters
            Validated run parameters.
        rng : numpy.random.Generator
            Shared generator for single-stream backends.
        seed_seq : SeedSequence
            Run seed sequence for backends that spawn per-block streams.
        progress_callback : callable or None
            Optional callback ``f(completed_paths, total_paths)``.

        Returns
        -------
        np.ndarray
            Array of shape ``(n_paths, n_steps + 1)``.
        """
