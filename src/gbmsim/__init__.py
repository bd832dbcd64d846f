"""gbmsim package public API."""

__version__ = "0.1.0"

from .core import SimulationFramework, SimulationResult
from .params import SimulationParameters
from .paths import generate_path
from .simulation import Ensemble, GBMSimulation, run_simulation
from .stats_engine import (
    DEFAULT_ENGINE,
    FnMetric,
    StatsContext,
    StatsEngine,
    TerminalDistributionStats,
    compute_statistics,
    index_percentile,
)
from .utils import autocrit, t_crit, z_crit

__all__ = [
    "SimulationParameters",
    "generate_path",
    "Ensemble",
    "GBMSimulation",
    "run_simulation",
    "TerminalDistributionStats",
    "compute_statistics",
    "index_percentile",
    "SimulationResult",
    "SimulationFramework",
    "StatsEngine",
    "StatsContext",
    "FnMetric",
    "DEFAULT_ENGINE",
    "z_crit",
    "t_crit",
    "autocrit",
]
