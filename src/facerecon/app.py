"""facerecon command-line entry point.

Reads a JSON run config, fits the multilinear model to the landmarks it
points at, and writes ``fit.json`` and ``fit.obj``.

Usage::

    facerecon config.json [--image-size W H] [--iterations N] [--output-dir DIR] [--verbose]
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from facerecon.core.config_loader import ReconstructionConfig, load_reconstruction_config
from facerecon.core.events import EventBus
from facerecon.core.state import Constraint2D
from facerecon.export.obj_exporter import export_fit_json, export_obj
from facerecon.fitting.reconstructor import SingleImageReconstructor
from facerecon.loaders.landmark_parser import (
    load_contour_groups_file, load_indices_file, load_landmarks_file,
)
from facerecon.loaders.obj_parser import load_obj_file

logger = logging.getLogger(__name__)


def build_reconstructor(config: ReconstructionConfig,
                        event_bus: EventBus | None = None) -> SingleImageReconstructor:
    """Load every input named by *config* into a ready-to-run reconstructor."""
    recon = SingleImageReconstructor(event_bus)
    recon.load_model(config.model_path)
    recon.load_priors(config.prior_identity_path, config.prior_expression_path)
    recon.set_mesh(load_obj_file(config.mesh_path))
    recon.set_indices(load_indices_file(config.indices_path))
    recon.set_contour_indices(load_contour_groups_file(config.contour_indices_path))

    points, weights = load_landmarks_file(config.landmarks_path)
    recon.set_constraints([Constraint2D(p, weight=float(w)) for p, w in zip(points, weights)])
    recon.set_image_size(config.image_width, config.image_height)
    recon.set_optimization_parameters(config.optimization)
    logger.info("Loaded %d landmarks for a %dx%d image",
                len(points), config.image_width, config.image_height)
    return recon


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Fit a multilinear face model to 2D landmarks")
    parser.add_argument("config", type=Path, help="JSON run configuration")
    parser.add_argument("--image-size", type=int, nargs=2, metavar=("W", "H"),
                        help="Override the image size from the config")
    parser.add_argument("--iterations", type=int,
                        help="Override the number of outer iterations")
    parser.add_argument("--output-dir", type=Path,
                        help="Directory for fit.json and fit.obj (default: config output_dir or cwd)")
    parser.add_argument("--verbose", action="store_true", help="Log every inner solve")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(name)s: %(message)s")

    try:
        config = load_reconstruction_config(args.config)
    except (OSError, ValueError) as e:
        logger.error("Cannot read config %s: %s", args.config, e)
        return 1

    if args.image_size:
        config.image_width, config.image_height = args.image_size
    if args.iterations is not None:
        try:
            config.optimization = replace(config.optimization, max_iterations=args.iterations)
        except ValueError as e:
            logger.error("%s", e)
            return 1

    try:
        recon = build_reconstructor(config)
        recon.reconstruct()
    except (OSError, ValueError, RuntimeError) as e:
        logger.error("Reconstruction failed: %s", e)
        return 1

    out_dir = args.output_dir or config.output_dir or Path.cwd()
    out_dir.mkdir(parents=True, exist_ok=True)
    export_fit_json(recon, out_dir / "fit.json")
    export_obj(recon.mesh, out_dir / "fit.obj")
    return 0


if __name__ == "__main__":
    sys.exit(main())
