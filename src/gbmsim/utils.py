r"""
gbmsim.utils
============

Critical values for two-sided confidence intervals.
"""

from __future__ import annotations

from scipy.stats import norm, t

__all__ = ["z_crit", "t_crit", "autocrit"]


def _check_confidence(confidence: float) -> None:
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")


def z_crit(confidence: float) -> float:
    r"""
    Two-sided normal critical value :math:`z_{1-\alpha/2}`.

    Examples
    --------
    >>> round(z_crit(0.95), 3)
    1.96
    """
    _check_confidence(confidence)
    return float(norm.ppf(1.0 - (1.0 - confidence) / 2.0))


def t_crit(confidence: float, df: int) -> float:
    r"""
    Two-sided Student-:math:`t` critical value :math:`t_{1-\alpha/2,\,df}`.

    Raises
    ------
    ValueError
        If ``df < 1``.
    """
    _check_confidence(confidence)
    if df < 1:
        raise ValueError("df must be >= 1")
    return float(t.ppf(1.0 - (1.0 - confidence) / 2.0, df))


def autocrit(confidence: float, n: int, method: str = "auto") -> tuple[float, str]:
    r"""
    Select a critical value for a sample of size ``n``.

    Parameters
    ----------
    confidence : float
        Confidence level in :math:`(0, 1)`.
    n : int
        Effective sample size.
    method : {"auto", "z", "t"}
        ``"auto"`` uses Student-t when :math:`n < 30`, otherwise z.

    Returns
    -------
    tuple of (float, str)
        The critical value and the kind actually used (``"z"`` or ``"t"``).
    """
    method = getattr(method, "value", method)
    if method not in ("auto", "z", "t"):
        raise ValueError(f"method must be 'auto', 'z' or 't', got '{method}'")
    use_t = method == "t" or (method == "auto" and n < 30)
    if use_t and n >= 2:
        return t_crit(confidence, n - 1), "t"
    return z_crit(confidence), "z"
