"""
Subspace DOA Estimation - Main Entry Point
"""

import json
import logging
import argparse

from .config import EngineConfig, EstimatorConfig, Parameters, SWEEP_PRESETS, SweepParameter
from .engine import DoaEngine
from .errors import InvalidParameters

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def _add_scenario_arguments(parser: argparse.ArgumentParser):
    defaults = Parameters()
    parser.add_argument(
        "--snapshots",
        type=int,
        default=defaults.snapshots,
        help=f"Number of snapshots (default: {defaults.snapshots})"
    )
    parser.add_argument(
        "--elements",
        type=int,
        default=defaults.array_elements,
        help=f"Number of array elements (default: {defaults.array_elements})"
    )
    parser.add_argument(
        "--snr",
        type=float,
        default=defaults.snr_db,
        help=f"Signal-to-noise ratio in dB (default: {defaults.snr_db})"
    )
    parser.add_argument(
        "--angles",
        type=float,
        nargs="+",
        default=list(defaults.source_angles),
        help="True source angles in degrees (default: 20 40 60)"
    )
    parser.add_argument(
        "--spacing",
        type=float,
        default=defaults.array_spacing,
        help=f"Element spacing in wavelengths (default: {defaults.array_spacing})"
    )
    parser.add_argument(
        "--carrier-freq",
        type=float,
        default=defaults.carrier_freq,
        help=f"Carrier frequency in GHz (default: {defaults.carrier_freq})"
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--scan-step",
        type=float,
        default=EstimatorConfig.scan_step_deg,
        help="MUSIC grid step in degrees (default: 1.0)"
    )
    parser.add_argument(
        "--esprit",
        choices=["ls", "tls"],
        default=EstimatorConfig.esprit_method,
        help="ESPRIT variant (default: ls)"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Subspace DOA estimation (MUSIC, Root-MUSIC, ESPRIT) for uniform linear arrays"
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the REST API server")
    serve.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)"
    )
    serve.add_argument(
        "--port",
        type=int,
        default=5002,
        help="Port to bind to (default: 5002)"
    )
    serve.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )
    serve.add_argument(
        "--trials",
        type=int,
        default=EngineConfig.num_trials,
        help="Trials per swept value (default: 5)"
    )

    estimate = subparsers.add_parser("estimate", help="Run all algorithms once and print JSON")
    _add_scenario_arguments(estimate)

    compare = subparsers.add_parser("compare", help="Run a parameter sweep and print JSON")
    _add_scenario_arguments(compare)
    compare.add_argument(
        "parameter",
        choices=[p.value for p in SweepParameter],
        help="Parameter to sweep"
    )
    compare.add_argument(
        "--values",
        type=float,
        nargs="+",
        default=None,
        help="Values to sweep (default: preset for the parameter)"
    )
    compare.add_argument(
        "--trials",
        type=int,
        default=EngineConfig.num_trials,
        help="Trials per swept value (default: 5)"
    )

    return parser


def _scenario_from_args(args) -> Parameters:
    return Parameters(
        snapshots=args.snapshots,
        array_elements=args.elements,
        snr_db=args.snr,
        source_angles=tuple(args.angles),
        carrier_freq=args.carrier_freq,
        array_spacing=args.spacing,
    )


def main(argv=None):
    """Main entry point for the DOA estimation tools"""
    parser = _build_parser()
    args = parser.parse_args(argv)
    command = args.command or "serve"

    if command == "serve":
        from .server import create_app

        host = getattr(args, "host", "0.0.0.0")
        port = getattr(args, "port", 5002)
        config = {"engine": {"num_trials": getattr(args, "trials", EngineConfig.num_trials)}}

        logger.info(f"Starting DOA estimation server on {host}:{port}")
        app = create_app(config)
        app.run(host=host, port=port, debug=getattr(args, "debug", False))
        return 0

    engine_config = EngineConfig(
        estimator=EstimatorConfig(scan_step_deg=args.scan_step, esprit_method=args.esprit)
    )

    try:
        engine = DoaEngine(engine_config)
        params = _scenario_from_args(args)

        if command == "estimate":
            results = engine.run_doa_estimation(params, seed=args.seed)
            output = [r.to_dict() for r in results]
            for entry in output:
                entry.pop("spectrum", None)
        else:
            sweep = SweepParameter.parse(args.parameter)
            values = args.values or SWEEP_PRESETS[sweep]["values"]
            rows = engine.run_comparison_analysis(
                sweep, values, params, trials=args.trials, seed=args.seed
            )
            output = [row.to_dict() for row in rows]
    except InvalidParameters as e:
        logger.error(f"Invalid parameters: {e}")
        return 2

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
