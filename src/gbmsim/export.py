r"""
gbmsim.export
=============

File exporters for simulation results.

The numerical core never touches files; these functions consume its plain data
structures (:class:`~gbmsim.simulation.Ensemble`,
:class:`~gbmsim.core.SimulationResult`) and write:

* ``stock_price_paths.csv``: one row per path, one column per time point.
* ``time_points.csv``: the time grid, one value per line.
* ``stock_price_plot.html``: a self-contained Chart.js page.
* ``stock_price_paths.png``: a matplotlib line chart (optional dependency).
"""

from __future__ import annotations

import json
import logging
import math
from html import escape
from pathlib import Path
from string import Template
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from .core import SimulationResult
    from .simulation import Ensemble

logger = logging.getLogger(__name__)

__all__ = [
    "PATHS_CSV",
    "TIME_POINTS_CSV",
    "HTML_REPORT",
    "PLOT_PNG",
    "paths_frame",
    "write_paths_csv",
    "write_time_points_csv",
    "render_html_report",
    "write_html_report",
    "plot_paths",
    "export_all",
]

PATHS_CSV = "stock_price_paths.csv"
TIME_POINTS_CSV = "time_points.csv"
HTML_REPORT = "stock_price_plot.html"
PLOT_PNG = "stock_price_paths.png"

# Paths drawn in charts; more only clutters the figure.
MAX_PATHS_TO_SHOW = 20


def paths_frame(ensemble: "Ensemble") -> pd.DataFrame:
    """
    Tabular view of an ensemble.

    Returns
    -------
    pandas.DataFrame
        Index ``Path`` (1-based path number), one column per time point labelled
        with its time in years.
    """
    frame = pd.DataFrame(
        np.asarray(ensemble.paths),
        index=pd.RangeIndex(1, ensemble.n_paths + 1, name="Path"),
        columns=[repr(float(t)) for t in ensemble.times],
    )
    return frame


def write_paths_csv(ensemble: "Ensemble", path: str | Path) -> Path:
    """Write the ``Path,t_0,...,t_n`` table to ``path``."""
    path = Path(path)
    paths_frame(ensemble).to_csv(path)
    logger.debug("Wrote %d paths to %s", ensemble.n_paths, path)
    return path


def write_time_points_csv(ensemble: "Ensemble", path: str | Path) -> Path:
    """Write the time grid to ``path``, one value per line and no header."""
    path = Path(path)
    pd.Series(ensemble.times).to_csv(path, index=False, header=False)
    return path


def _pct(x: float) -> str:
    return f"{x * 100:g}"


def _json_number(x: float) -> float | None:
    # JSON has no inf/nan; Chart.js skips nulls.
    return float(x) if math.isfinite(x) else None


def _script_json(value) -> str:
    # "</" inside an inline script would end the script element
    return json.dumps(value).replace("</", "<\\/")


_HTML_TEMPLATE = Template(
    """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Monte Carlo Stock Price Simulation</title>
    <script src="https://cdn.jsdelivr.net/npm/chart.js"></script>
    <style>
        body { font-family: Arial, sans-serif; margin: 20px; }
        .container { max-width: 1200px; margin: 0 auto; }
        .chart-container { width: 100%; height: 600px; margin-top: 20px; }
        h1, h2 { color: #333; }
        .params, .stats { background-color: #f5f5f5; padding: 15px; border-radius: 5px; margin-bottom: 20px; }
        table { border-collapse: collapse; }
        td { padding: 2px 12px 2px 0; }
    </style>
</head>
<body>
    <div class="container">
        <h1>Monte Carlo Stock Price Simulation</h1>

        <div class="params">
            <h2>Simulation Parameters</h2>
            <p><strong>Initial Stock Price:</strong> ${currency}${initial_price}</p>
            <p><strong>Expected Annual Return:</strong> ${drift_pct}%</p>
            <p><strong>Annual Volatility:</strong> ${volatility_pct}%</p>
            <p><strong>Time Period:</strong> ${horizon} years</p>
            <p><strong>Number of Time Steps:</strong> ${n_steps}</p>
            <p><strong>Number of Paths:</strong> ${n_paths}</p>
        </div>

        <div class="stats">
            <h2>Final Stock Price Statistics</h2>
            <table>
${stats_rows}
            </table>
        </div>

        <div class="chart-container">
            <canvas id="stockChart"></canvas>
        </div>
    </div>

    <script>
        const timePoints = ${times_json};
        const paths = ${paths_json};

        function getRandomColor() {
            const letters = '0123456789ABCDEF';
            let color = '#';
            for (let i = 0; i < 6; i++) {
                color += letters[Math.floor(Math.random() * 16)];
            }
            return color;
        }

        const datasets = paths.map((values, i) => ({
            label: `Path $${i + 1}`,
            data: values,
            borderColor: getRandomColor(),
            backgroundColor: 'transparent',
            borderWidth: 1,
            pointRadius: 0
        }));

        window.onload = function () {
            const ctx = document.getElementById('stockChart').getContext('2d');
            new Chart(ctx, {
                type: 'line',
                data: { labels: timePoints, datasets: datasets },
                options: {
                    responsive: true,
                    maintainAspectRatio: false,
                    plugins: {
                        title: { display: true, text: 'Stock Price Simulation Paths', font: { size: 16 } },
                        legend: { display: false },
                        tooltip: { mode: 'index', intersect: false }
                    },
                    scales: {
                        x: { title: { display: true, text: 'Time (years)' } },
                        y: { title: { display: true, text: ${axis_title_json} } }
                    }
                }
            });
        };
    </script>
</body>
</html>
"""
)


def render_html_report(
    result: "SimulationResult",
    max_paths: int = MAX_PATHS_TO_SHOW,
    currency: str = "$",
) -> str:
    r"""
    Render a self-contained HTML page for ``result``.

    The parameter block, the terminal statistics and the first ``max_paths``
    paths are embedded directly, so the page needs no companion CSV file.

    Parameters
    ----------
    result : SimulationResult
        Completed run.
    max_paths : int, default 20
        Number of paths drawn in the chart.
    currency : str, default ``"$"``
        Symbol used for prices.

    Returns
    -------
    str
    """
    if max_paths < 0:
        raise ValueError("max_paths must be non-negative")
    p = result.params
    s = result.stats
    shown = np.asarray(result.ensemble.paths[:max_paths])
    rows = [
        ("Mean", s.mean),
        ("Standard Deviation", s.std),
        ("Minimum", s.minimum),
        ("Maximum", s.maximum),
        ("5th Percentile", s.percentile_5),
        ("95th Percentile", s.percentile_95),
    ]
    symbol = escape(currency)
    stats_rows = "\n".join(
        f"                <tr><td>{label}</td><td>{symbol}{value:.2f}</td></tr>"
        for label, value in rows
    )
    return _HTML_TEMPLATE.substitute(
        currency=symbol,
        axis_title_json=_script_json(f"Stock Price ({currency})"),
        initial_price=f"{p.initial_price:g}",
        drift_pct=_pct(p.drift),
        volatility_pct=_pct(p.volatility),
        horizon=f"{p.horizon:g}",
        n_steps=p.n_steps,
        n_paths=p.n_paths,
        stats_rows=stats_rows,
        times_json=_script_json([round(float(t), 10) for t in result.ensemble.times]),
        paths_json=_script_json([[_json_number(v) for v in row] for row in shown]),
    )


def write_html_report(
    result: "SimulationResult",
    path: str | Path,
    max_paths: int = MAX_PATHS_TO_SHOW,
    currency: str = "$",
) -> Path:
    """Write :func:`render_html_report` output to ``path``."""
    path = Path(path)
    path.write_text(render_html_report(result, max_paths, currency), encoding="utf-8")
    return path


def plot_paths(
    result: "SimulationResult",
    path: str | Path,
    max_paths: int = MAX_PATHS_TO_SHOW,
) -> Path:
    """
    Save a PNG line chart of the first ``max_paths`` paths with the 5th/95th
    percentile band of the terminal price.

    Raises
    ------
    ImportError
        If matplotlib is not installed (``pip install gbmsim[plot]``).
    """
    try:
        import matplotlib  # pylint: disable=import-outside-toplevel

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt  # pylint: disable=import-outside-toplevel
    except ImportError as e:
        raise ImportError(
            "plot_paths requires matplotlib. Install it with: pip install gbmsim[plot]"
        ) from e

    path = Path(path)
    ens = result.ensemble
    s = result.stats
    fig, ax = plt.subplots(figsize=(12, 6))
    try:
        for row in ens.paths[:max_paths]:
            ax.plot(ens.times, row, linewidth=0.8, alpha=0.7)
        ax.axhline(s.mean, color="black", linestyle="--", linewidth=1.5, label=f"Mean = {s.mean:.2f}")
        ax.axhspan(
            s.percentile_5, s.percentile_95, color="orange", alpha=0.15, label="5th-95th percentile"
        )
        ax.set_xlabel("Time (years)")
        ax.set_ylabel("Stock Price")
        ax.set_title("Stock Price Simulation Paths")
        ax.legend(loc="upper left")
        ax.grid(True, alpha=0.3)
        fig.tight_layout()
        fig.savefig(path, dpi=120)
    finally:
        plt.close(fig)
    return path


def export_all(
    result: "SimulationResult",
    output_dir: str | Path = ".",
    *,
    html: bool = True,
    plot: bool = False,
    currency: str = "$",
) -> list[Path]:
    r"""
    Write every export of ``result`` into ``output_dir``.

    Parameters
    ----------
    result : SimulationResult
        Completed run.
    output_dir : path-like, default ``"."``
        Created if missing.
    html : bool, default True
        Also write the HTML report.
    plot : bool, default False
        Also write the PNG chart (requires matplotlib).

    Returns
    -------
    list of Path
        Files written, in order.
    """
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    written = [
        write_paths_csv(result.ensemble, out / PATHS_CSV),
        write_time_points_csv(result.ensemble, out / TIME_POINTS_CSV),
    ]
    if html:
        written.append(write_html_report(result, out / HTML_REPORT, currency=currency))
    if plot:
        written.append(plot_paths(result, out / PLOT_PNG))
    for p in written:
        logger.info("Saved %s", p)
    return written
