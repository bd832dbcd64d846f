"""
Execution backends for GBM path generation.

This subpackage provides pluggable execution strategies:

CPU Backends
    :class:`SequentialBackend`: Single generator, path-major draw order
    :class:`ThreadBackend`: Thread-based parallelism, one stream per block
    :class:`ProcessBackend`: Process-based parallelism, one stream per block

Utilities
    :func:`make_blocks`: Chunking helper for parallel work distribution
    :func:`worker_run_chunk`: Top-level worker for process pools
    :func:`is_windows_platform`: Platform detection helper

Protocol
    :class:`ExecutionBackend`: Interface for custom backends
"""

from .base import ExecutionBackend, is_windows_platform, make_blocks, worker_run_chunk
from .parallel import ProcessBackend, ThreadBackend
from .sequential import SequentialBackend

__all__ = [
    # Protocol
    "ExecutionBackend",
    # CPU Backends
    "SequentialBackend",
    "ThreadBackend",
    "ProcessBackend",
    # Utility Functions
    "make_blocks",
    "worker_run_chunk",
    "is_windows_platform",
]
