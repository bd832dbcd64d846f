"""Command-line front end: collect parameters, run, report, export."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, Optional, Sequence

from . import __version__
from .core import SimulationResult
from .export import export_all
from .params import SimulationParameters
from .simulation import GBMSimulation

logger = logging.getLogger(__name__)

# (field, flag, prompt, type)
_FIELDS: tuple[tuple[str, str, str, type], ...] = (
    ("initial_price", "--initial-price", "Enter initial stock price ($): ", float),
    (
        "drift",
        "--drift",
        "Enter expected annual return (as decimal, e.g., 0.08 for 8%): ",
        float,
    ),
    (
        "volatility",
        "--volatility",
        "Enter annual volatility (as decimal, e.g., 0.20 for 20%): ",
        float,
    ),
    ("horizon", "--horizon", "Enter time period (in years): ", float),
    ("n_steps", "--steps", "Enter number of time steps: ", int),
    ("n_paths", "--paths", "Enter number of simulation paths: ", int),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gbmsim",
        description="Monte Carlo stock price simulation under geometric Brownian motion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gbmsim
  gbmsim --initial-price 100 --drift 0.08 --volatility 0.2 --horizon 1 --steps 252 --paths 1000
  gbmsim --initial-price 100 --drift 0.08 --volatility 0.2 --horizon 1 --steps 252 \\
         --paths 100000 --backend thread --workers 8 --seed 42 --output-dir out --plot
        """,
    )
    params = parser.add_argument_group("simulation parameters (prompted for when omitted)")
    params.add_argument("--initial-price", type=float, help="Initial stock price S0")
    params.add_argument("--drift", type=float, help="Expected annual return as a decimal")
    params.add_argument("--volatility", type=float, help="Annual volatility as a decimal")
    params.add_argument("--horizon", type=float, help="Time period in years")
    params.add_argument("--steps", type=int, help="Number of time steps")
    params.add_argument("--paths", type=int, help="Number of simulation paths")

    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for reproducibility (default: OS entropy)")
    parser.add_argument("--backend", choices=GBMSimulation._VALID_BACKENDS, default="auto",
                        help="Execution backend (default: auto)")
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker count for parallel backends (default: CPU count)")
    parser.add_argument("--output-dir", default=".",
                        help="Directory for CSV/HTML/PNG exports (default: current directory)")
    parser.add_argument("--no-export", action="store_true", help="Skip writing any files")
    parser.add_argument("--no-html", action="store_true", help="Skip the HTML report")
    parser.add_argument("--plot", action="store_true", help="Also save a PNG chart (needs matplotlib)")
    parser.add_argument("--currency", default="$", help="Currency symbol in reports (default: $)")
    parser.add_argument("--no-input", action="store_true",
                        help="Never prompt; missing parameters are an error")
    parser.add_argument("--extended", action="store_true",
                        help="Print extended statistics (skew, CI, upside probability, ...)")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Warnings and errors only")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def collect_parameters(
    args: argparse.Namespace,
    input_fn: Optional[Callable[[str], str]] = None,
) -> SimulationParameters:
    """
    Build :class:`SimulationParameters` from parsed flags, prompting for the rest.

    Raises
    ------
    ValueError
        If a prompted value does not parse, a value is missing under
        ``--no-input``, or the parameters violate their invariants.
    """
    input_fn = input_fn or input
    values = {}
    for name, flag, prompt, kind in _FIELDS:
        value = getattr(args, flag[2:].replace("-", "_"))
        if value is None:
            if args.no_input:
                raise ValueError(f"{flag} is required when --no-input is given")
            raw = input_fn(prompt).strip()
            try:
                value = kind(raw)
            except ValueError:
                raise ValueError(f"invalid {kind.__name__} for {name}: {raw!r}") from None
        values[name] = value
    return SimulationParameters(**values)


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Set the package log level from the CLI verbosity flags."""
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.getLogger("gbmsim").setLevel(level)


def run(args: argparse.Namespace, params: SimulationParameters) -> SimulationResult:
    sim = GBMSimulation()
    sim.set_seed(args.seed)
    print("\nRunning Monte Carlo simulation...")
    result = sim.run(params, backend=args.backend, n_workers=args.workers)
    print(f"Simulation completed in {result.execution_time:.4f} seconds.\n")
    print(result.result_to_string(currency=args.currency, extended=args.extended))
    return result


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point of the ``gbmsim`` console script; returns the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    if args.workers is not None and args.workers <= 0:
        parser.error("--workers must be positive")
    if args.seed is not None and args.seed < 0:
        parser.error("--seed must be a non-negative integer")

    try:
        if not args.no_input:
            print("Monte Carlo Stock Price Simulation")
            print("==================================\n")
        params = collect_parameters(args)
    except (ValueError, TypeError) as e:
        logger.error("Invalid simulation parameters: %s", e)
        return 2
    except (EOFError, KeyboardInterrupt):
        logger.error("Input aborted")
        return 130

    try:
        result = run(args, params)
        if not args.no_export:
            written = export_all(
                result,
                args.output_dir,
                html=not args.no_html,
                plot=args.plot,
                currency=args.currency,
            )
            print(f"\nResults saved: {', '.join(str(p) for p in written)}")
    except KeyboardInterrupt:
        print("\n\nSimulation interrupted by user.")
        return 130
    except (OSError, ImportError) as e:
        logger.error("Export failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
