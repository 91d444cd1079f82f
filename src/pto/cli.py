"""
PTO - Proportional Topology Optimization
Command-line Entry Point

Runs one benchmark problem with either variant:
  --variant compliance : minimum compliance at a fixed volume fraction (PTOc)
  --variant stress     : minimum material within a stress band (PTOs)
"""

import argparse
import dataclasses
import inspect
import json
import logging
import uuid
from pathlib import Path
from typing import List, Optional

import numpy as np

from .core.loads import BoundaryConditionError
from .core.problems import PROBLEMS, Problem
from .export import STL_MODES, export_density_to_stl
from .numerical.fem import MaterialProperties
from .numerical.topopt import ComplianceVariant, PTOParams, StressVariant, optimize
from .utils.logging_utils import get_logger, set_level

logger = get_logger(__name__)


def build_problem(args: argparse.Namespace):
    """Instantiate the selected benchmark with any mesh size overrides."""
    factory = PROBLEMS[args.problem]
    accepted = inspect.signature(factory).parameters
    kwargs = {}
    for name in ("nelx", "nely", "nelz"):
        value = getattr(args, name)
        if value is None:
            continue
        if name not in accepted:
            raise ValueError(f"Problem '{args.problem}' does not take --{name}")
        kwargs[name] = value
    return factory(**kwargs)


def build_variant(args: argparse.Namespace):
    if args.variant == "stress":
        if args.allowable_stress is None:
            raise ValueError("--variant stress requires --allowable-stress")
        return StressVariant(
            allowable_stress=args.allowable_stress,
            tolerance_band=args.tolerance_band,
            initial_target_material=args.initial_material,
        )
    return ComplianceVariant(volume_fraction=args.volume_fraction)


def build_settings(args: argparse.Namespace):
    """Material, algorithm parameters and variant from the command line."""
    material = MaterialProperties(E0=args.youngs_modulus, nu=args.nu, penalty=args.penalty)
    params = PTOParams(
        filter_radius=args.filter_radius,
        move_limit=args.move_limit,
        max_iterations=args.max_iter,
        convergence_tol=args.tol,
        solver=args.solver,
        verbose=not args.quiet,
    )
    if not 0.0 < args.isovalue < 1.0:
        raise ValueError(f"--isovalue must lie in (0, 1), got {args.isovalue}")
    return material, params, build_variant(args)


def run_optimization(
    args: argparse.Namespace,
    problem: Problem,
    material: MaterialProperties,
    params: PTOParams,
    variant
) -> dict:
    """
    Run PTO on a benchmark problem and save the results.

    Writes into <output_dir>/<run_id>/:
    - density_field.npy
    - history.json
    - metadata.json
    - density.png, history.png (with --plot)
    - density.stl (with --stl, 3D problems)
    """
    run_id = str(uuid.uuid4())[:8]

    logger.info("=" * 60)
    logger.info("PTO - Proportional Topology Optimization")
    logger.info("Run ID: %s", run_id)
    logger.info("=" * 60)

    # 1. Problem
    logger.info("Problem: %s (%s)", problem.name, problem.description)
    logger.info("Mesh: %s, %s design elements", problem.mesh.shape, f"{problem.n_design:,}")

    # 2. Optimize
    result = optimize(
        problem.mesh,
        problem.design_mask,
        problem.boundary_conditions,
        material=material,
        variant=variant,
        params=params,
    )

    # 3. Save results
    output_dir = Path(args.output_dir) / run_id
    output_dir.mkdir(parents=True, exist_ok=True)

    np.save(output_dir / "density_field.npy", result.density)

    with open(output_dir / "history.json", "w") as f:
        json.dump([dataclasses.asdict(r) for r in result.history], f, indent=2)

    metadata = {
        "problem": problem.name,
        "variant": variant.name,
        "run_id": run_id,
        "mesh_shape": list(problem.mesh.shape),
        "n_design": problem.n_design,
        "params": dataclasses.asdict(params),
        "material": dataclasses.asdict(material),
        "volume_final": float(result.final_volume),
        "compliance_final": float(result.final_compliance),
        "iterations": result.iterations,
        "converged": result.converged,
        "status": result.status.value,
        "elapsed_time_s": result.elapsed_time,
    }
    if isinstance(variant, StressVariant):
        metadata["allowable_stress"] = variant.allowable_stress
        metadata["tolerance_band"] = variant.tolerance_band
        metadata["sigma_max_final"] = float(result.stress_field[problem.design_mask].max())
    else:
        metadata["volume_fraction_target"] = variant.volume_fraction

    with open(output_dir / "metadata.json", "w") as f:
        json.dump(metadata, f, indent=2)

    files = ["density_field.npy", "history.json", "metadata.json"]
    if args.plot:
        import matplotlib.pyplot as plt
        from .visualization import plot_density, plot_history

        fig = plot_density(result.density, problem.mesh, problem.design_mask,
                           title=f"{problem.name} ({variant.name})",
                           path=output_dir / "density.png")
        plt.close(fig)
        fig = plot_history(
            result.history,
            allowable_stress=getattr(variant, "allowable_stress", None),
            tolerance_band=getattr(variant, "tolerance_band", 0.0),
            path=output_dir / "history.png",
        )
        plt.close(fig)
        files += ["density.png", "history.png"]

    if args.stl:
        if problem.mesh.ndim == 3:
            export_density_to_stl(
                result.density, problem.mesh, output_dir / "density.stl",
                isovalue=args.isovalue, mode=args.stl_mode, name=problem.name,
            )
            files.append("density.stl")
        else:
            logger.warning("STL export skipped: %s is a 2D problem", problem.name)

    logger.info("Results saved to %s/", output_dir)
    for name in files:
        logger.info("  - %s", name)

    metadata["output_dir"] = str(output_dir)
    return metadata


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pto",
        description="PTO - Proportional Topology Optimization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
            Examples:
            # Cantilever, minimum compliance at 40% volume
            pto --problem cantilever --volume-fraction 0.4

            # L-bracket, minimum material within +/-5% of the allowable stress
            pto --problem l_bracket --variant stress --allowable-stress 2.0 --plot

            # 3D cantilever, density isosurface saved as STL
            pto --problem cantilever_3d --stl --isovalue 0.5
                    """
    )

    # Problem selection
    parser.add_argument("--problem", "-p", choices=sorted(PROBLEMS), default="cantilever",
                        help="Benchmark problem (default: cantilever)")
    parser.add_argument("--variant", "-v", choices=["compliance", "stress"], default="compliance",
                        help="PTO variant (default: compliance)")
    parser.add_argument("--nelx", type=int, default=None, help="Elements in x")
    parser.add_argument("--nely", type=int, default=None, help="Elements in y")
    parser.add_argument("--nelz", type=int, default=None, help="Elements in z (3D problems)")

    # Variant parameters
    parser.add_argument("--volume-fraction", "-vf", type=float, default=0.4,
                        help="Target volume fraction, compliance variant (default: 0.4)")
    parser.add_argument("--allowable-stress", type=float, default=None,
                        help="Allowable Von Mises stress, stress variant")
    parser.add_argument("--tolerance-band", type=float, default=0.05,
                        help="Relative stress band half-width (default: 0.05)")
    parser.add_argument("--initial-material", type=float, default=None,
                        help="Initial target material, stress variant (default: 0.4 * design elements)")

    # Material
    parser.add_argument("--youngs-modulus", "-E", type=float, default=1.0, help="E0 (default: 1.0)")
    parser.add_argument("--nu", type=float, default=0.3, help="Poisson's ratio (default: 0.3)")
    parser.add_argument("--penalty", type=float, default=3.0, help="SIMP exponent (default: 3.0)")

    # Algorithm
    parser.add_argument("--filter-radius", type=float, default=1.5, help="Filter radius (default: 1.5)")
    parser.add_argument("--move-limit", type=float, default=0.3, help="Move limit alpha (default: 0.3)")
    parser.add_argument("--max-iter", type=int, default=200, help="Maximum iterations (default: 200)")
    parser.add_argument("--tol", type=float, default=1e-3, help="Convergence tolerance (default: 1e-3)")
    parser.add_argument("--solver", choices=["direct", "iterative"], default="direct",
                        help="Linear solver (default: direct)")

    # Output
    parser.add_argument("--output-dir", "-o", type=str, default="data",
                        help="Output directory for results (default: data)")
    parser.add_argument("--plot", action="store_true", help="Save density and history plots")
    parser.add_argument("--stl", action="store_true", help="Export the density isosurface as STL (3D problems)")
    parser.add_argument("--isovalue", type=float, default=0.5, help="STL isosurface density (default: 0.5)")
    parser.add_argument("--stl-mode", choices=STL_MODES, default="binary", help="STL file format (default: binary)")
    parser.add_argument("--quiet", "-q", action="store_true", help="Do not log every iteration")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level")
    return parser


def main(argv: Optional[List[str]] = None) -> dict:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.captureWarnings(True)
    get_logger("py.warnings", args.log_level)
    set_level(args.log_level)

    try:
        problem = build_problem(args)
        material, params, variant = build_settings(args)
    except ValueError as exc:
        parser.error(str(exc))

    try:
        return run_optimization(args, problem, material, params, variant)
    except BoundaryConditionError as exc:
        parser.error(str(exc))


def console_main() -> None:
    """Console script entry point (exit status 0 on success)."""
    main()


if __name__ == "__main__":
    main()
