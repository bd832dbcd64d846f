import multiprocessing as mp

import numpy as np
import pytest

from gbmsim import GBMSimulation, SimulationFramework, SimulationParameters


@pytest.fixture(scope="session", autouse=True)
def _set_spawn_start_method():
    try:
        mp.set_start_method("spawn")
    except RuntimeError:
        pass  # already set


@pytest.fixture
def small_params():
    """Small but realistic parameter set (daily steps over one year)."""
    return SimulationParameters(
        initial_price=100.0,
        drift=0.08,
        volatility=0.2,
        horizon=1.0,
        n_steps=252,
        n_paths=200,
    )


@pytest.fixture
def tiny_params():
    """Parameters small enough to inspect by hand."""
    return SimulationParameters(100.0, 0.05, 0.3, 1.0, 4, 3)


@pytest.fixture
def seeded_simulation():
    """Simulation seeded for reproducible runs."""
    sim = GBMSimulation(name="TestSim")
    sim.set_seed(42)
    return sim


@pytest.fixture
def framework():
    """Framework with a seeded simulation and no scenarios."""
    sim = GBMSimulation()
    sim.set_seed(123)
    return SimulationFramework(sim)


@pytest.fixture
def small_result(seeded_simulation, small_params):
    """Completed sequential run on ``small_params``."""
    return seeded_simulation.run(small_params, backend="sequential")


@pytest.fixture
def rng():
    return np.random.default_rng(2024)
