import dataclasses

import numpy as np
import pytest

from gbmsim import SimulationParameters


class TestSimulationParametersValidation:
    """Construction-time validation of simulation parameters"""

    def test_valid_parameters(self, small_params):
        """Valid values are stored as given"""
        assert small_params.initial_price == 100.0
        assert small_params.n_steps == 252
        assert small_params.n_paths == 200

    @pytest.mark.parametrize("price", [0.0, -1.0])
    def test_non_positive_price_rejected(self, price):
        """initial_price must be strictly positive"""
        with pytest.raises(ValueError, match="initial_price must be positive"):
            SimulationParameters(price, 0.05, 0.2, 1.0, 10, 10)

    def test_negative_volatility_rejected(self):
        """Negative volatility is rejected, not clamped"""
        with pytest.raises(ValueError, match="volatility must be non-negative"):
            SimulationParameters(100.0, 0.05, -0.1, 1.0, 10, 10)

    def test_zero_volatility_allowed(self):
        """Zero volatility is a valid deterministic model"""
        p = SimulationParameters(100.0, 0.05, 0.0, 1.0, 10, 10)
        assert p.volatility == 0.0

    @pytest.mark.parametrize("horizon", [0.0, -0.5])
    def test_non_positive_horizon_rejected(self, horizon):
        """horizon must be strictly positive"""
        with pytest.raises(ValueError, match="horizon must be positive"):
            SimulationParameters(100.0, 0.05, 0.2, horizon, 10, 10)

    @pytest.mark.parametrize("field,kwargs", [
        ("n_steps", {"n_steps": 0}),
        ("n_paths", {"n_paths": 0}),
        ("n_paths", {"n_paths": -3}),
    ])
    def test_non_positive_counts_rejected(self, small_params, field, kwargs):
        """Step and path counts must be at least one"""
        with pytest.raises(ValueError, match=f"{field} must be >= 1"):
            small_params.with_overrides(**kwargs)

    @pytest.mark.parametrize("bad", [2.5, "10", True])
    def test_non_integer_counts_rejected(self, bad):
        """Counts must be true integers; bool and floats are refused"""
        with pytest.raises(TypeError, match="n_steps must be an integer"):
            SimulationParameters(100.0, 0.05, 0.2, 1.0, bad, 10)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), -float("inf")])
    def test_non_finite_reals_rejected(self, value):
        """Real-valued fields must be finite"""
        with pytest.raises(ValueError, match="drift must be finite"):
            SimulationParameters(100.0, value, 0.2, 1.0, 10, 10)

    def test_non_numeric_real_rejected(self):
        """A string price is a type error"""
        with pytest.raises(TypeError, match="initial_price must be a real number"):
            SimulationParameters("100", 0.05, 0.2, 1.0, 10, 10)

    def test_numpy_scalars_normalised(self):
        """NumPy scalars are accepted and stored as builtin types"""
        p = SimulationParameters(np.float32(100), np.float64(0.05), 0.2, 1, np.int64(10), np.int32(5))
        assert type(p.initial_price) is float
        assert type(p.horizon) is float
        assert type(p.n_steps) is int
        assert type(p.n_paths) is int

    def test_frozen(self, small_params):
        """Parameters are immutable"""
        with pytest.raises(dataclasses.FrozenInstanceError):
            small_params.drift = 0.5  # type: ignore[misc]


class TestSimulationParametersDerived:
    """Derived values and copying"""

    def test_dt(self):
        """dt is horizon / n_steps"""
        p = SimulationParameters(100.0, 0.05, 0.2, 2.0, 8, 1)
        assert p.dt == pytest.approx(0.25)

    def test_time_grid(self):
        """Time grid has n_steps + 1 points from 0 to horizon"""
        p = SimulationParameters(100.0, 0.05, 0.2, 2.0, 8, 1)
        grid = p.time_grid()
        assert grid.shape == (9,)
        assert grid[0] == 0.0
        assert grid[-1] == pytest.approx(2.0)
        np.testing.assert_allclose(np.diff(grid), 0.25)

    def test_with_overrides_validates(self, small_params):
        """Overrides produce a new validated value"""
        q = small_params.with_overrides(volatility=0.0, n_paths=5)
        assert q.volatility == 0.0
        assert q.n_paths == 5
        assert small_params.n_paths == 200
        with pytest.raises(ValueError):
            small_params.with_overrides(horizon=0.0)

    def test_equality(self):
        """Equal field values compare equal"""
        a = SimulationParameters(100, 0.05, 0.2, 1, 10, 10)
        b = SimulationParameters(100.0, 0.05, 0.2, 1.0, 10, 10)
        assert a == b
