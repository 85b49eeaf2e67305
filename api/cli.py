#!/usr/bin/env python3
"""
SEADOSE CLI Tool.

Command-line interface for offline checks and running the service:
- Spectrum synthesis for a sea state
- One-shot MSDV assessment
- Response table inventory
- API server

Usage:
    python -m api.cli spectrum --hs 4.59 --tp 14.24
    python -m api.cli assess --hs 4.59 --tp 14.24 --speed 12 --heading 150
    python -m api.cli list-tables
    python -m api.cli serve --port 8000
"""
import argparse
import json
import sys
from typing import List, Optional

from src.config import settings
from src.spectral import (
    ComfortAdvisor,
    ComfortLimits,
    MotionSicknessPipeline,
    ResponseLibrary,
    SpectralError,
    SpectrumSynthesizer,
    VesselState,
    WaveState,
)


def _library(rao_dir: Optional[str] = None) -> ResponseLibrary:
    return ResponseLibrary(
        rao_dir=rao_dir or settings.rao_dir,
        speeds_kts=settings.speed_buckets,
        headings_deg=settings.heading_buckets,
    )


def spectrum(hs: float, tp: float, strict: bool = False, as_json: bool = False) -> None:
    """Print the calibrated JONSWAP spectrum summary."""
    curve = SpectrumSynthesizer(settings.spectral).synthesize(hs, tp, strict=strict)

    if as_json:
        print(json.dumps({
            "hs": curve.Hs,
            "tp": curve.Tp,
            "alpha": curve.alpha,
            "converged": curve.converged,
            "iterations": curve.iterations,
            "frequencies": curve.frequencies.tolist(),
            "density": curve.density.tolist(),
        }))
        return

    peak = int(curve.density.argmax())
    print("\n" + "=" * 60)
    print("JONSWAP SPECTRUM")
    print("=" * 60)
    print(f"Hs input:        {curve.Hs:.3f} m")
    print(f"Hs from m0:      {curve.significant_height_m:.3f} m")
    print(f"Tp:              {curve.Tp:.3f} s (wp = {curve.peak_frequency_rad:.4f} rad/s)")
    print(f"alpha:           {curve.alpha:.6g}")
    print(f"Calibration:     {'converged' if curve.converged else 'NOT CONVERGED'} "
          f"after {curve.iterations} iteration(s)")
    print(f"Peak density:    {curve.density[peak]:.4f} m^2 s at {curve.frequencies[peak]:.2f} rad/s")
    print("=" * 60 + "\n")


def assess(
    hs: float,
    tp: float,
    speed: float,
    heading: float,
    wave_direction: Optional[float] = None,
    positions: Optional[List[float]] = None,
    rao_dir: Optional[str] = None,
    as_json: bool = False,
) -> None:
    """Run one pipeline cycle and print MSDV per position."""
    pipeline = MotionSicknessPipeline(
        synthesizer=SpectrumSynthesizer(settings.spectral),
        library=_library(rao_dir),
        positions_m=positions or settings.positions_m,
    )
    wave = WaveState(hs, tp, direction_deg=wave_direction)
    vessel = VesselState(speed, heading)
    result = pipeline.run(wave, vessel)

    advisor = ComfortAdvisor(
        ComfortLimits(msdv_caution=settings.msdv_caution, msdv_warning=settings.msdv_warning),
        reference_position_m=settings.reference_position_m,
    )
    comfort = advisor.assess(result.msdv, wave, vessel)

    if as_json:
        data = result.to_dict()
        data["comfort"] = comfort.to_dict()
        print(json.dumps(data))
        return

    print("\n" + "=" * 60)
    print("MOTION SICKNESS ASSESSMENT")
    print("=" * 60)
    print(f"Sea state:   Hs {hs:.2f} m, Tp {tp:.2f} s")
    print(f"Vessel:      {speed:.1f} kn, heading {heading:.0f} deg "
          f"(RAO bucket {result.speed_bucket_kts:g} kn / {result.heading_bucket_deg:g} deg)")
    print(f"alpha:       {result.alpha:.6g}"
          f"{'' if result.calibration_converged else ' (not converged)'}")
    print("-" * 60)
    print(f"{'Position (m)':>14} {'MSDV (m/s^1.5)':>18}")
    for position in result.positions:
        dose = result.msdv[position]
        print(f"{position:>14g} {('blank' if dose is None else f'{dose:.4f}'):>18}")
    print("-" * 60)
    print(f"Comfort:     {comfort.status.value.upper()} - {comfort.recommendation}")
    if comfort.recommended_speed_kts is not None:
        print(f"Speed:       reduce to {comfort.recommended_speed_kts:.1f} kn")
    if comfort.heading_advice:
        print(f"Heading:     {comfort.heading_advice}")
    print(f"Outlook:     {comfort.outlook}")
    if result.faults:
        print(f"Faults:      {', '.join(f.stage for f in result.faults)}")
    print("=" * 60 + "\n")


def list_tables(rao_dir: Optional[str] = None) -> None:
    """List the expected response tables and whether each is present."""
    tables = _library(rao_dir).available_tables()

    print("\n" + "=" * 70)
    print("RESPONSE TABLES")
    print("=" * 70)
    print(f"{'DOF':<8} {'Speed (kn)':<12} {'Present':<9} {'Path'}")
    print("-" * 70)
    for dof, speed, path, exists in tables:
        print(f"{dof.value:<8} {speed:<12g} {'Yes' if exists else 'No':<9} {path}")
    print("=" * 70)

    missing = sum(1 for *_, exists in tables if not exists)
    print(f"Total: {len(tables)} table(s), {missing} missing\n")
    if missing:
        sys.exit(1)


def serve(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False) -> None:
    """Run the API server."""
    import uvicorn
    from api.config import settings as api_settings

    uvicorn.run(
        "api.main:app",
        host=host or api_settings.api_host,
        port=port or api_settings.api_port,
        reload=reload,
        log_level=api_settings.log_level,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SEADOSE CLI Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Synthesize a spectrum:
    python -m api.cli spectrum --hs 4.59 --tp 14.24

  Assess motion sickness at 12 kn in bow-quartering seas:
    python -m api.cli assess --hs 4.59 --tp 14.24 --speed 12 --heading 150

  Check which response tables are present:
    python -m api.cli list-tables --rao-dir data/rao

  Run the API server:
    python -m api.cli serve --port 8000
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # spectrum
    spectrum_parser = subparsers.add_parser("spectrum", help="Synthesize a JONSWAP spectrum")
    spectrum_parser.add_argument("--hs", type=float, required=True, help="Significant wave height (m)")
    spectrum_parser.add_argument("--tp", type=float, required=True, help="Peak period (s)")
    spectrum_parser.add_argument("--strict", action="store_true", help="Fail if alpha does not converge")
    spectrum_parser.add_argument("--json", action="store_true", help="Print JSON")

    # assess
    assess_parser = subparsers.add_parser("assess", help="Compute MSDV per hull position")
    assess_parser.add_argument("--hs", type=float, required=True, help="Significant wave height (m)")
    assess_parser.add_argument("--tp", type=float, required=True, help="Peak period (s)")
    assess_parser.add_argument("--speed", type=float, required=True, help="Vessel speed (kn)")
    assess_parser.add_argument("--heading", type=float, required=True, help="Heading relative to waves (deg)")
    assess_parser.add_argument("--wave-direction", type=float, help="Mean wave direction (deg)")
    assess_parser.add_argument(
        "--positions", type=float, nargs="+", metavar="M",
        help="Positions from midships (m), e.g. --positions -50 0 50",
    )
    assess_parser.add_argument("--rao-dir", help="Response table directory")
    assess_parser.add_argument("--json", action="store_true", help="Print JSON")

    # list-tables
    tables_parser = subparsers.add_parser("list-tables", help="List expected response tables")
    tables_parser.add_argument("--rao-dir", help="Response table directory")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")
    serve_parser.add_argument("--reload", action="store_true", help="Auto-reload on code changes")

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    settings.configure_logging()

    try:
        if args.command == "spectrum":
            spectrum(args.hs, args.tp, strict=args.strict, as_json=args.json)
        elif args.command == "assess":
            assess(
                args.hs, args.tp, args.speed, args.heading,
                wave_direction=args.wave_direction,
                positions=args.positions,
                rao_dir=args.rao_dir,
                as_json=args.json,
            )
        elif args.command == "list-tables":
            list_tables(args.rao_dir)
        elif args.command == "serve":
            serve(args.host, args.port, args.reload)
        else:
            parser.print_help()
            sys.exit(1)
    except SpectralError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
