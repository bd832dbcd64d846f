r"""
gbmsim.stats_engine
===================
Terminal-price statistics and the metric engine used by the simulation runner.

This module defines:

- :class:`TerminalDistributionStats` and :func:`compute_statistics`: the reducer
  that turns an ensemble into mean, population standard deviation, extrema and
  the 5th/95th percentiles.
- :func:`index_percentile`: percentile by index selection on the sorted sample,
  with the index clamped to the sample bounds.
- :class:`StatsContext`: a typed, explicit configuration object shared by all metrics.
- :class:`FnMetric`: a frozen adapter that names a metric function.
- :class:`StatsEngine`: an orchestrator that evaluates one or more metrics.

Percentiles here are **fractions** in :math:`[0, 1]` (``0.05`` is the 5th
percentile) and are never interpolated.

See Also
--------
gbmsim.utils.autocrit
    Selects a z/t critical value for a target confidence level and sample size.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Optional, Protocol, Sequence, TypeVar

import numpy as np
from scipy.stats import kurtosis as sp_kurtosis
from scipy.stats import skew as sp_skew

from .utils import autocrit

logger = logging.getLogger(__name__)


_PCTS = (0.05, 0.25, 0.5, 0.75, 0.95)  # default percentiles


class NanPolicy(str, Enum):
    r"""
    Strategies for handling non-finite terminal values (overflowed paths).

    Attributes
    ----------
    propagate : str
        Keep infinities and NaNs; they flow into every metric.
    omit : str
        Drop non-finite observations before computing a metric.
    """

    propagate = "propagate"
    omit = "omit"


class CIMethod(str, Enum):
    r"""
    Strategies for selecting confidence-interval critical values.

    Attributes
    ----------
    auto : str
        Choose Student-t when :math:`n < 30`, otherwise z.
    z : str
        Always use the normal :math:`z` critical value.
    t : str
        Always use the Student-:math:`t` critical value.
    """

    auto = "auto"
    z = "z"
    t = "t"


@dataclass(slots=True)
class StatsContext:
    r"""
    Shared, explicit configuration for metric computations.

    Attributes
    ----------
    n : int
        Declared sample size (number of paths).
    confidence : float, default 0.95
        Confidence level in :math:`(0, 1)` for :func:`ci_mean`.
    ci_method : {"auto", "z", "t"}, default "auto"
        Strategy for :func:`ci_mean`.
    percentiles : tuple of float, default ``(0.05, 0.25, 0.5, 0.75, 0.95)``
        Fractions in :math:`[0, 1]` evaluated by :func:`percentiles`.
    nan_policy : {"propagate", "omit"}, default "propagate"
        If ``"omit"``, drop non-finite values before all computations.
    target : float, optional
        Reference price, normally the initial price :math:`S_0`. Required by
        :func:`expected_return`, :func:`upside_probability` and the log-return metrics.
    ddof : int, default 0
        Degrees of freedom for :func:`std` (0 => population standard deviation).

    Notes
    -----
    Prefer :meth:`with_overrides` to derive a modified copy.

    Examples
    --------
    >>> ctx = StatsContext(n=5000, target=100.0)
    >>> round(ctx.alpha, 2)
    0.05
    """

    n: int
    confidence: float = 0.95
    ci_method: CIMethod = "auto"
    percentiles: tuple[float, ...] = _PCTS
    nan_policy: NanPolicy = "propagate"
    target: Optional[float] = None
    ddof: int = 0

    def with_overrides(self, **changes) -> "StatsContext":
        """Return a shallow copy with selected fields replaced."""
        return replace(self, **changes)

    @property
    def alpha(self) -> float:
        r"""Two-sided tail mass :math:`\alpha = 1 - \text{confidence}`."""
        return 1.0 - self.confidence

    def __post_init__(self) -> None:
        if not (0.0 < self.confidence < 1.0):
            raise ValueError("confidence must be in (0,1)")
        if any(p < 0.0 or p > 1.0 for p in self.percentiles):
            raise ValueError("percentiles must be fractions in [0,1]")
        if self.ddof < 0:
            raise ValueError("ddof must be >= 0")
        if getattr(self.nan_policy, "value", self.nan_policy) not in ("propagate", "omit"):
            raise ValueError(f"Unknown nan_policy: {self.nan_policy}")
        if self.target is not None and not self.target > 0:
            raise ValueError("target must be a positive price")


class Metric(Protocol):
    r"""
    Protocol for metric callables used by :class:`StatsEngine`.

    A metric exposes a ``name`` attribute and is callable as
    ``metric(x: numpy.ndarray, ctx: StatsContext) -> Any``.
    """

    name: str

    def __call__(self, x: np.ndarray, ctx: StatsContext, /) -> Any: ...


T = TypeVar("T")


@dataclass(frozen=True)
class FnMetric(Generic[T]):
    r"""
    Lightweight adapter that binds a human-readable ``name`` to a metric function.

    Parameters
    ----------
    name : str
        Key under which the metric result is stored in :meth:`StatsEngine.compute`.
    fn : callable
        Function with signature ``fn(x: ndarray, ctx: StatsContext) -> T``.
    doc : str, optional
        Short description.

    Examples
    --------
    >>> m = FnMetric("mean", lambda a, ctx: float(np.mean(a)))
    >>> m(np.array([1, 2, 3]), StatsContext(n=3))
    2.0
    """

    name: str
    fn: Callable[[np.ndarray, StatsContext], T]
    doc: str = ""

    def __call__(self, x: np.ndarray, ctx: StatsContext) -> T:
        return self.fn(x, ctx)


class StatsEngine:
    r"""
    Orchestrator that evaluates a set of metrics over terminal prices.

    Parameters
    ----------
    metrics : iterable of Metric
        Callables with a ``name`` and signature ``metric(x, ctx)``.

    Notes
    -----
    Metrics that need context the caller did not supply (``ctx.target``) are
    skipped rather than failing the whole computation.

    Examples
    --------
    >>> eng = StatsEngine([FnMetric("mean", mean), FnMetric("std", std)])
    >>> eng.compute(np.array([1., 2., 3.]))
    {'mean': 2.0, 'std': 0.816496580927726}
    """

    def __init__(self, metrics: Iterable[Metric]):
        self._metrics = list(metrics)

    def available(self) -> tuple[str, ...]:
        return tuple(m.name for m in self._metrics)

    def compute(
        self,
        x: np.ndarray,
        ctx: Optional[StatsContext] = None,
        select: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        r"""
        Evaluate the registered metrics on ``x``.

        Parameters
        ----------
        x : ndarray
            Terminal prices.
        ctx : StatsContext, optional
            Context parameters. If None, one is built from ``**kwargs``.
        select : sequence of str, optional
            If given, compute only the metrics with these names.
        **kwargs :
            Used to build a StatsContext if ctx is None; ``n`` defaults to ``len(x)``.

        Returns
        -------
        dict
            Mapping from metric name to computed value.
        """
        if ctx is not None:
            ctx = _ensure_ctx(ctx, x)
        else:
            base = dict(kwargs)
            base.setdefault("n", int(np.asarray(x).size))
            ctx = StatsContext(**base)

        metrics_to_compute = (
            self._metrics if select is None else [m for m in self._metrics if m.name in set(select)]
        )

        out: dict[str, Any] = {}
        for m in metrics_to_compute:
            try:
                out[m.name] = m(x, ctx)
            except ValueError as e:
                if "requires ctx.target" in str(e):
                    logger.debug("Skipping metric %s: %s", m.name, e)
                    continue
                raise
        return out


def _ensure_ctx(ctx: Any, x: np.ndarray) -> StatsContext:
    r"""
    Normalize ``None``, a mapping, or a :class:`StatsContext` into a context.

    Raises
    ------
    TypeError
        If ``ctx`` cannot be interpreted as configuration data.
    """
    if isinstance(ctx, StatsContext):
        return ctx

    arr_len = int(np.asarray(x).size)
    if ctx is None:
        return StatsContext(n=arr_len)
    if isinstance(ctx, dict):
        data = dict(ctx)
        data.setdefault("n", arr_len)
        return StatsContext(**data)
    raise TypeError("ctx must be a StatsContext, dict, or None")


def _clean(x: np.ndarray, ctx: StatsContext) -> np.ndarray:
    """Return the sample as a float array, filtered per ``ctx.nan_policy``."""
    arr = np.asarray(x, dtype=float).ravel()
    if ctx.nan_policy == "omit":
        arr = arr[np.isfinite(arr)]
    return arr


def _shifted_mean(arr: np.ndarray) -> float:
    # Shift by the first value so identical samples reproduce it exactly.
    shift = float(arr[0]) if np.isfinite(arr[0]) else 0.0
    with np.errstate(invalid="ignore", over="ignore"):
        return shift + float(np.mean(arr - shift))


def index_percentile(values: Iterable[float], p: float, *, assume_sorted: bool = False) -> float:
    r"""
    Percentile by index selection on the ascending-sorted sample.

    The reported value is ``sorted_values[k]`` with
    :math:`k = \lfloor p \cdot n \rfloor` clamped to :math:`[0, n-1]`. No
    interpolation takes place, so the result is always a sample element.

    Parameters
    ----------
    values : array-like
        Sample values.
    p : float
        Fraction in :math:`[0, 1]`, e.g. ``0.95``.
    assume_sorted : bool, default False
        Skip sorting when the caller already sorted ``values``.

    Returns
    -------
    float

    Raises
    ------
    ValueError
        If the sample is empty or ``p`` is outside :math:`[0, 1]`.

    Examples
    --------
    >>> index_percentile(range(20), 0.95)
    19.0
    >>> index_percentile([3.0, 1.0, 2.0], 1.0)
    3.0
    """
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"percentile must be a fraction in [0,1], got {p}")
    arr = np.asarray(values, dtype=float).ravel()
    n = arr.size
    if n == 0:
        raise ValueError("percentile of an empty sample is undefined")
    if not assume_sorted:
        arr = np.sort(arr)
    k = min(max(int(math.floor(p * n)), 0), n - 1)
    return float(arr[k])


def mean(x: np.ndarray, ctx: Any = None) -> float:
    r"""
    Arithmetic mean :math:`\bar X = \frac{1}{n}\sum_i x_i`.

    Returns ``nan`` for an empty (or fully omitted) sample.

    Examples
    --------
    >>> mean(np.array([1, 2, 3]))
    2.0
    """
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    return _shifted_mean(arr) if arr.size else float("nan")


def std(x: np.ndarray, ctx: Any = None) -> float:
    r"""
    Standard deviation with ``ctx.ddof`` degrees of freedom.

    With the default ``ddof=0`` this is the population standard deviation

    .. math::
       \sigma = \sqrt{\frac{1}{n}\sum_i (x_i - \bar X)^2}.

    Returns ``0.0`` when :math:`n - \text{ddof} \le 0` and ``nan`` for an empty sample.

    Examples
    --------
    >>> std(np.array([2., 4., 4., 4., 5., 5., 7., 9.]))
    2.0
    """
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    if arr.size == 0:
        return float("nan")
    if arr.size - ctx.ddof <= 0:
        return 0.0
    m = _shifted_mean(arr)
    with np.errstate(invalid="ignore", over="ignore"):
        return float(np.sqrt(np.sum((arr - m) ** 2) / (arr.size - ctx.ddof)))


def minimum(x: np.ndarray, ctx: Any = None) -> float:
    """Smallest value of the sample (``nan`` if empty)."""
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    return float(np.min(arr)) if arr.size else float("nan")


def maximum(x: np.ndarray, ctx: Any = None) -> float:
    """Largest value of the sample (``nan`` if empty)."""
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    return float(np.max(arr)) if arr.size else float("nan")


def percentiles(x: np.ndarray, ctx: Any = None) -> dict[float, float]:
    r"""
    Index-selected percentiles for every fraction in ``ctx.percentiles``.

    Returns
    -------
    dict[float, float]
        Mapping :math:`p \mapsto` :func:`index_percentile` ``(x, p)``; values are
        ``nan`` for an empty sample.

    Examples
    --------
    >>> percentiles(np.array([0., 1., 2., 3.]), {"percentiles": (0.5, 0.75)})
    {0.5: 2.0, 0.75: 3.0}
    """
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    if arr.size == 0:
        return {p: float("nan") for p in ctx.percentiles}
    arr = np.sort(arr)
    return {p: index_percentile(arr, p, assume_sorted=True) for p in ctx.percentiles}


def skew(x: np.ndarray, ctx: Any = None) -> float:
    r"""
    Unbiased sample skewness via :func:`scipy.stats.skew` (``0.0`` if :math:`n \le 2`).

    GBM terminal prices are lognormal, so the skew is positive whenever
    :math:`\sigma > 0`.
    """
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    return float(sp_skew(arr, bias=False)) if arr.size > 2 else 0.0  # type: ignore[arg-type]


def kurtosis(x: np.ndarray, ctx: Any = None) -> float:
    r"""
    Unbiased sample **excess** kurtosis via :func:`scipy.stats.kurtosis`
    (``0.0`` if :math:`n \le 3`).
    """
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    return float(sp_kurtosis(arr, fisher=True, bias=False)) if arr.size > 3 else 0.0  # type: ignore[arg-type]


def ci_mean(x: np.ndarray, ctx: Any = None) -> dict[str, float | str]:
    r"""
    Parametric CI for the expected terminal price.

    With :math:`SE = s/\sqrt{n}` (``s`` the Bessel-corrected standard deviation)
    the interval is :math:`\bar X \pm c \cdot SE`, where :math:`c` is chosen by
    :func:`gbmsim.utils.autocrit`.

    Returns
    -------
    dict[str, float | str]
        Keys ``confidence``, ``method``, ``se``, ``crit``, ``low``, ``high``.
        Bounds are ``nan`` when fewer than two observations are available.
    """
    ctx = _ensure_ctx(ctx, x)
    arr = _clean(x, ctx)
    method = getattr(ctx.ci_method, "value", ctx.ci_method)
    if arr.size < 2:
        return {
            "confidence": ctx.confidence,
            "method": method,
            "se": float("nan"),
            "crit": float("nan"),
            "low": float("nan"),
            "high": float("nan"),
        }

    mu = _shifted_mean(arr)
    s = std(arr, ctx.with_overrides(ddof=1, nan_policy="propagate"))
    se = s / np.sqrt(arr.size) if s != 0.0 else 0.0
    crit, kind = autocrit(ctx.confidence, arr.size, method)
    return {
        "confidence": ctx.confidence,
        "method": kind,
        "se": float(se),
        "crit": float(crit),
        "low": float(mu - crit * se),
        "high": float(mu + crit * se),
    }


def _require_target(ctx: StatsContext, name: str) -> float:
    if ctx.target is None:
        raise ValueError(f"{name} requires ctx.target")
    return float(ctx.target)


def expected_return(x: np.ndarray, ctx: Any = None) -> float:
    r"""Simple expected return over the horizon, :math:`\bar X / S_0 - 1`."""
    ctx = _ensure_ctx(ctx, x)
    target = _require_target(ctx, "expected_return")
    return mean(x, ctx) / target - 1.0


def upside_probability(x: np.ndarray, ctx: Any = None) -> float:
    r"""Share of paths finishing above the reference price, :math:`\Pr(S_T > S_0)`."""
    ctx = _ensure_ctx(ctx, x)
    target = _require_target(ctx, "upside_probability")
    arr = _clean(x, ctx)
    return float(np.mean(arr > target)) if arr.size else float("nan")


def _log_returns(x: np.ndarray, ctx: StatsContext, name: str) -> np.ndarray:
    target = _require_target(ctx, name)
    arr = _clean(x, ctx)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.log(arr / target)


def log_return_mean(x: np.ndarray, ctx: Any = None) -> float:
    r"""
    Mean log return :math:`\overline{\ln(S_T/S_0)}`.

    Under GBM its expectation is :math:`(\mu - \tfrac{1}{2}\sigma^2) T`.
    """
    ctx = _ensure_ctx(ctx, x)
    r = _log_returns(x, ctx, "log_return_mean")
    if not r.size:
        return float("nan")
    with np.errstate(invalid="ignore", over="ignore"):
        return float(np.mean(r))


def log_return_std(x: np.ndarray, ctx: Any = None) -> float:
    r"""
    Population standard deviation of :math:`\ln(S_T/S_0)`; expectation
    :math:`\sigma\sqrt{T}` under GBM.
    """
    ctx = _ensure_ctx(ctx, x)
    r = _log_returns(x, ctx, "log_return_std")
    if not r.size:
        return float("nan")
    with np.errstate(invalid="ignore", over="ignore"):
        return float(np.std(r))


@dataclass(frozen=True)
class TerminalDistributionStats:
    r"""
    Summary of an ensemble's terminal prices.

    Attributes
    ----------
    mean : float
        Arithmetic mean of the terminal prices.
    std : float
        Population standard deviation (divides by ``n``).
    minimum, maximum : float
        Extremes of the terminal prices.
    percentile_5, percentile_95 : float
        Index-selected 5th and 95th percentiles (see :func:`index_percentile`).
    n_paths : int
        Number of terminal values reduced.
    """

    mean: float
    std: float
    minimum: float
    maximum: float
    percentile_5: float
    percentile_95: float
    n_paths: int

    def as_dict(self) -> dict[str, float | int]:
        """Plain mapping of the fields, for exporters."""
        return asdict(self)


def terminal_values(ensemble: Any) -> np.ndarray:
    """
    Extract the last-column values of an ensemble.

    Accepts an :class:`~gbmsim.simulation.Ensemble` or any 2-D array-like of
    shape ``(n_paths, n_steps + 1)``.
    """
    values = getattr(ensemble, "terminal_values", None)
    if values is not None:
        return np.asarray(values, dtype=float)
    arr = np.asarray(ensemble, dtype=float)
    if arr.size == 0:
        return np.empty(0, dtype=float)
    if arr.ndim != 2:
        raise ValueError(f"ensemble must be 2-D (paths x time points), got shape {arr.shape}")
    return arr[:, -1]


def compute_statistics(ensemble: Any) -> TerminalDistributionStats:
    r"""
    Reduce an ensemble to :class:`TerminalDistributionStats`.

    Parameters
    ----------
    ensemble : Ensemble or array-like
        Simulated paths, one row per path. Row order does not matter.

    Returns
    -------
    TerminalDistributionStats

    Raises
    ------
    ValueError
        If the ensemble contains no paths.

    Notes
    -----
    Non-finite terminal values (from overflowing paths) are not filtered: they
    propagate into the mean and standard deviation as ``inf``/``nan``.
    """
    values = terminal_values(ensemble)
    n = int(values.size)
    if n == 0:
        raise ValueError("cannot compute statistics of an empty ensemble (n_paths = 0)")

    ctx = StatsContext(n=n, percentiles=(0.05, 0.95))
    pct = percentiles(values, ctx)
    return TerminalDistributionStats(
        mean=mean(values, ctx),
        std=std(values, ctx),
        minimum=minimum(values, ctx),
        maximum=maximum(values, ctx),
        percentile_5=pct[0.05],
        percentile_95=pct[0.95],
        n_paths=n,
    )


def build_default_engine(include_target_metrics: bool = True) -> StatsEngine:
    r"""
    Construct a :class:`StatsEngine` with a practical set of metrics.

    Parameters
    ----------
    include_target_metrics : bool, default True
        Include metrics relative to the reference price (:func:`expected_return`,
        :func:`upside_probability`, :func:`log_return_mean`, :func:`log_return_std`).

    Returns
    -------
    StatsEngine
    """
    metrics: list[Metric] = [
        FnMetric[float]("mean", mean, "Mean terminal price"),
        FnMetric[float]("std", std, "Standard deviation of terminal prices"),
        FnMetric[float]("min", minimum, "Minimum terminal price"),
        FnMetric[float]("max", maximum, "Maximum terminal price"),
        FnMetric[dict[float, float]]("percentiles", percentiles, "Index-selected percentiles"),
        FnMetric[float]("skew", skew, "Fisher skewness (unbiased)"),
        FnMetric[float]("kurtosis", kurtosis, "Excess kurtosis (unbiased)"),
        FnMetric[dict[str, float | str]]("ci_mean", ci_mean, "z/t CI for the mean"),
    ]
    if include_target_metrics:
        metrics.extend(
            [
                FnMetric[float]("expected_return", expected_return, "Mean / S0 - 1"),
                FnMetric[float]("upside_probability", upside_probability, "P(S_T > S0)"),
                FnMetric[float]("log_return_mean", log_return_mean, "Mean of ln(S_T / S0)"),
                FnMetric[float]("log_return_std", log_return_std, "Std of ln(S_T / S0)"),
            ]
        )
    return StatsEngine(metrics)


# Build a default engine at import time
DEFAULT_ENGINE = build_default_engine()

__all__ = [
    "NanPolicy",
    "CIMethod",
    "StatsContext",
    "Metric",
    "FnMetric",
    "StatsEngine",
    "TerminalDistributionStats",
    "compute_statistics",
    "terminal_values",
    "index_percentile",
    "mean",
    "std",
    "minimum",
    "maximum",
    "percentiles",
    "skew",
    "kurtosis",
    "ci_mean",
    "expected_return",
    "upside_probability",
    "log_return_mean",
    "log_return_std",
    "build_default_engine",
    "DEFAULT_ENGINE",
]
