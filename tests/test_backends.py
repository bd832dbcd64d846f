import numpy as np
import pytest

from gbmsim.backends import (
    ProcessBackend,
    SequentialBackend,
    ThreadBackend,
    make_blocks,
    worker_run_chunk,
)
from gbmsim.paths import generate_block


class TestMakeBlocks:
    """Block creation for parallel processing"""

    def test_make_blocks_exact_division(self):
        """Blocks with exact division"""
        blocks = make_blocks(10000, block_size=1000)
        assert len(blocks) == 10
        assert blocks[0] == (0, 1000)
        assert blocks[-1] == (9000, 10000)

    def test_make_blocks_with_remainder(self):
        """Last block takes the remainder"""
        blocks = make_blocks(10500, block_size=1000)
        assert len(blocks) == 11
        assert blocks[-1] == (10000, 10500)

    def test_make_blocks_small_n(self):
        """A range smaller than block_size is one block"""
        assert make_blocks(500, block_size=1000) == [(0, 500)]

    def test_make_blocks_coverage(self):
        """All elements are covered exactly once"""
        n = 12345
        blocks = make_blocks(n, block_size=1000)
        assert sum(j - i for i, j in blocks) == n
        assert all(a[1] == b[0] for a, b in zip(blocks, blocks[1:]))

    def test_make_blocks_invalid_size(self):
        """Non-positive block size is rejected"""
        with pytest.raises(ValueError, match="block_size must be positive"):
            make_blocks(10, block_size=0)


class TestWorkerRunChunk:
    """Top-level worker used by the pool backends"""

    def test_uses_philox_stream(self, tiny_params):
        """Worker output equals a Philox generator built from the same child seed"""
        ss = np.random.SeedSequence(9).spawn(1)[0]
        out = worker_run_chunk(tiny_params, 4, ss)
        expected = generate_block(
            tiny_params, 4, np.random.Generator(np.random.Philox(np.random.SeedSequence(9).spawn(1)[0]))
        )
        np.testing.assert_array_equal(out, expected)


class TestSequentialBackend:
    """Reference single-stream backend"""

    def test_path_major_order(self, tiny_params):
        """Output equals consecutive generate_path calls on one generator"""
        out = SequentialBackend().run(tiny_params, np.random.default_rng(1), None, None)
        expected = generate_block(tiny_params, tiny_params.n_paths, np.random.default_rng(1))
        np.testing.assert_array_equal(out, expected)

    def test_progress_callback(self, small_params):
        """Progress reaches the total path count"""
        calls = []
        SequentialBackend().run(
            small_params, np.random.default_rng(0), None, lambda c, t: calls.append((c, t))
        )
        assert calls
        assert calls[-1] == (small_params.n_paths, small_params.n_paths)
        assert [c for c, _ in calls] == sorted(c for c, _ in calls)


class TestThreadBackend:
    """Thread-pool backend"""

    def test_invalid_workers(self):
        """Worker count must be positive"""
        with pytest.raises(ValueError, match="n_workers must be positive"):
            ThreadBackend(n_workers=0)

    def test_invalid_chunks(self):
        """Chunks per worker must be positive"""
        with pytest.raises(ValueError, match="chunks_per_worker must be positive"):
            ThreadBackend(n_workers=2, chunks_per_worker=0)

    def test_shape_and_start(self, small_params):
        """All rows are filled and start at the initial price"""
        out = ThreadBackend(n_workers=3).run(small_params, None, np.random.SeedSequence(5), None)
        assert out.shape == (small_params.n_paths, small_params.n_steps + 1)
        assert np.all(out[:, 0] == small_params.initial_price)
        assert np.all(np.isfinite(out))

    def test_reproducible_for_same_seed_and_workers(self, small_params):
        """Same seed and worker count give bit-identical output"""
        a = ThreadBackend(n_workers=4).run(small_params, None, np.random.SeedSequence(5), None)
        b = ThreadBackend(n_workers=4).run(small_params, None, np.random.SeedSequence(5), None)
        np.testing.assert_array_equal(a, b)

    def test_blocks_follow_spawned_seeds(self, tiny_params):
        """Each block is generated from its own spawned child seed"""
        backend = ThreadBackend(n_workers=1, chunks_per_worker=tiny_params.n_paths)
        out = backend.run(tiny_params, None, np.random.SeedSequence(8), None)
        children = np.random.SeedSequence(8).spawn(tiny_params.n_paths)
        expected = np.vstack([worker_run_chunk(tiny_params, 1, c) for c in children])
        np.testing.assert_array_equal(out, expected)

    def test_progress_callback(self, small_params):
        """Progress is reported per block and reaches the total"""
        calls = []
        ThreadBackend(n_workers=2).run(
            small_params, None, np.random.SeedSequence(1), lambda c, t: calls.append((c, t))
        )
        assert calls[-1] == (small_params.n_paths, small_params.n_paths)


class TestProcessBackend:
    """Process-pool backend"""

    def test_matches_thread_backend(self, tiny_params):
        """Process and thread backends share the block layout and seeds"""
        t = ThreadBackend(n_workers=2).run(tiny_params, None, np.random.SeedSequence(4), None)
        p = ProcessBackend(n_workers=2).run(tiny_params, None, np.random.SeedSequence(4), None)
        np.testing.assert_array_equal(t, p)
