import json
import re

import numpy as np
import pandas as pd
import pytest

from gbmsim.export import (
    HTML_REPORT,
    PATHS_CSV,
    PLOT_PNG,
    TIME_POINTS_CSV,
    export_all,
    paths_frame,
    render_html_report,
    write_paths_csv,
    write_time_points_csv,
)


class TestCsvExport:
    """Tabular path export"""

    def test_paths_frame_layout(self, small_result):
        frame = paths_frame(small_result.ensemble)
        assert frame.shape == (small_result.n_paths, small_result.params.n_steps + 1)
        assert frame.index.name == "Path"
        assert frame.index[0] == 1
        assert float(frame.columns[0]) == 0.0
        assert float(frame.columns[-1]) == pytest.approx(1.0)

    def test_write_paths_csv(self, small_result, tmp_path):
        out = write_paths_csv(small_result.ensemble, tmp_path / "paths.csv")
        header = out.read_text().splitlines()[0].split(",")
        assert header[0] == "Path"
        assert len(header) == small_result.params.n_steps + 2
        back = pd.read_csv(out, index_col="Path")
        np.testing.assert_allclose(back.to_numpy(), small_result.ensemble.paths)

    def test_write_time_points_csv(self, small_result, tmp_path):
        out = write_time_points_csv(small_result.ensemble, tmp_path / "t.csv")
        values = [float(v) for v in out.read_text().split()]
        np.testing.assert_allclose(values, small_result.params.time_grid())


class TestHtmlReport:
    """Self-contained Chart.js report"""

    def test_contains_parameters_and_stats(self, small_result):
        html = render_html_report(small_result)
        s = small_result.stats
        assert "<title>Monte Carlo Stock Price Simulation</title>" in html
        assert "Initial Stock Price:</strong> $100" in html
        assert "Expected Annual Return:</strong> 8%" in html
        assert "Annual Volatility:</strong> 20%" in html
        assert f"${s.mean:.2f}" in html
        assert f"${s.percentile_95:.2f}" in html
        assert "`Path ${i + 1}`" in html

    def test_embeds_limited_paths(self, small_result):
        html = render_html_report(small_result, max_paths=3)
        match = re.search(r"const paths = (.*);", html)
        paths = json.loads(match.group(1))
        assert len(paths) == 3
        assert paths[0][0] == small_result.params.initial_price

    def test_non_finite_values_become_null(self, seeded_simulation):
        from gbmsim import SimulationParameters

        res = seeded_simulation.run(SimulationParameters(1e300, 500.0, 0.0, 10.0, 2, 1))
        html = render_html_report(res)
        paths = json.loads(re.search(r"const paths = (.*);", html).group(1))
        assert paths[0][-1] is None

    def test_currency_symbol_escaped(self, small_result):
        """Quotes and markup in the currency symbol cannot break the page"""
        html = render_html_report(small_result, currency="R'<b>&")
        assert "R&#x27;&lt;b&gt;&amp;" in html
        assert "<b>" not in html
        axis = re.search(r"y: \{ title: \{ display: true, text: (.*) \} \}", html).group(1)
        assert json.loads(axis) == "Stock Price (R'<b>&)"

    def test_negative_max_paths(self, small_result):
        with pytest.raises(ValueError, match="max_paths"):
            render_html_report(small_result, max_paths=-1)


class TestExportAll:
    """Combined export into a directory"""

    def test_default_outputs(self, small_result, tmp_path):
        out_dir = tmp_path / "nested" / "out"
        written = export_all(small_result, out_dir)
        assert [p.name for p in written] == [PATHS_CSV, TIME_POINTS_CSV, HTML_REPORT]
        assert all(p.exists() for p in written)

    def test_without_html(self, small_result, tmp_path):
        written = export_all(small_result, tmp_path, html=False)
        assert [p.name for p in written] == [PATHS_CSV, TIME_POINTS_CSV]

    def test_with_plot(self, small_result, tmp_path):
        pytest.importorskip("matplotlib")
        written = export_all(small_result, tmp_path, plot=True)
        png = tmp_path / PLOT_PNG
        assert png in written
        assert png.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"

    def test_unwritable_directory(self, small_result, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(OSError):
            export_all(small_result, blocker / "sub")
