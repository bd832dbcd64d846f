import pytest

from gbmsim.utils import autocrit, t_crit, z_crit


class TestCriticalValues:
    """z and t critical values"""

    def test_z_crit_95(self):
        assert z_crit(0.95) == pytest.approx(1.959964, abs=1e-6)

    def test_t_crit_wider_than_z(self):
        assert t_crit(0.95, 5) > z_crit(0.95)
        assert t_crit(0.95, 5) == pytest.approx(2.570582, abs=1e-6)

    @pytest.mark.parametrize("confidence", [0.0, 1.0, -0.5, 1.5])
    def test_invalid_confidence(self, confidence):
        with pytest.raises(ValueError, match="confidence"):
            z_crit(confidence)

    def test_invalid_df(self):
        with pytest.raises(ValueError, match="df must be >= 1"):
            t_crit(0.95, 0)


class TestAutocrit:
    """Critical value selection"""

    def test_auto_small_sample_uses_t(self):
        crit, kind = autocrit(0.95, 10)
        assert kind == "t"
        assert crit == pytest.approx(t_crit(0.95, 9))

    def test_auto_large_sample_uses_z(self):
        assert autocrit(0.95, 1000) == (pytest.approx(z_crit(0.95)), "z")

    def test_forced_t_with_one_observation_falls_back_to_z(self):
        assert autocrit(0.95, 1, method="t")[1] == "z"

    def test_forced_z(self):
        assert autocrit(0.95, 5, method="z")[1] == "z"

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="method must be"):
            autocrit(0.95, 10, method="bootstrap")
