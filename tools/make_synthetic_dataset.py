"""Write a complete synthetic reconstruction dataset to disk.

Produces a core tensor, both prior files, the template OBJ, landmark,
index and contour files, and a ``config.json`` that ``facerecon`` can run
directly.  Landmarks are rendered from a known pose, which is stored in
``ground_truth.json`` for comparison with the fit.

Usage::

    python -m tools.make_synthetic_dataset OUT_DIR [--yaw 5] [--pitch -3] [--roll 2]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np

from facerecon.core.state import OptimizationParameters
from facerecon.export.obj_exporter import export_obj
from facerecon.loaders.prior_loader import PriorData, serialize_prior
from facerecon.loaders.tensor_loader import serialize_core_tensor
from facerecon.model.prior import PriorComponent
from facerecon.model.synthetic import build_synthetic_face, render_constraints

logger = logging.getLogger(__name__)

DEFAULT_TRANSLATION = (0.02, -0.01, -2.0)


def _prior_bytes(component: PriorComponent) -> bytes:
    return serialize_prior(PriorData(
        average=component.average,
        target=component.target,
        covariance=component.covariance,
        basis=component.basis,
    ))


def write_dataset(
    out_dir: Path,
    rotation: tuple[float, float, float] = (0.0, 0.0, 0.0),
    translation: tuple[float, float, float] = DEFAULT_TRANSLATION,
    image_size: tuple[int, int] = (640, 480),
    optimization: OptimizationParameters | None = None,
) -> Path:
    """Write all dataset files into *out_dir*; returns the config path."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    face = build_synthetic_face()

    (out_dir / "core.bin").write_bytes(serialize_core_tensor(face.model.core))
    (out_dir / "prior_id.bin").write_bytes(_prior_bytes(face.prior.identity))
    (out_dir / "prior_exp.bin").write_bytes(_prior_bytes(face.prior.expression))
    export_obj(face.mesh, out_dir / "template.obj")

    constraints = render_constraints(face, np.array(rotation), np.array(translation),
                                     image_size[0], image_size[1])
    (out_dir / "landmarks.txt").write_text(
        "".join(f"{c.data[0]:.6f} {c.data[1]:.6f}\n" for c in constraints))
    (out_dir / "indices.txt").write_text("".join(f"{i}\n" for i in face.indices))
    (out_dir / "contour_points.txt").write_text(
        "".join(" ".join(str(i) for i in group) + "\n" for group in face.contour_groups))

    config = {
        "model": "core.bin",
        "prior_identity": "prior_id.bin",
        "prior_expression": "prior_exp.bin",
        "mesh": "template.obj",
        "landmarks": "landmarks.txt",
        "indices": "indices.txt",
        "contour_indices": "contour_points.txt",
        "image_size": list(image_size),
    }
    if optimization is not None:
        config["optimization"] = optimization.to_dict()
    config_path = out_dir / "config.json"
    config_path.write_text(json.dumps(config, indent=2))

    truth = {"rotation": list(rotation), "translation": list(translation)}
    (out_dir / "ground_truth.json").write_text(json.dumps(truth, indent=2))
    logger.info("Synthetic dataset written to %s", out_dir)
    return config_path


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Write a synthetic facerecon dataset")
    parser.add_argument("out_dir", type=Path)
    parser.add_argument("--yaw", type=float, default=0.0, help="degrees")
    parser.add_argument("--pitch", type=float, default=0.0, help="degrees")
    parser.add_argument("--roll", type=float, default=0.0, help="degrees")
    parser.add_argument("--image-size", type=int, nargs=2, default=(640, 480), metavar=("W", "H"))
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    rotation = tuple(float(np.radians(a)) for a in (args.yaw, args.pitch, args.roll))
    write_dataset(args.out_dir, rotation=rotation, image_size=tuple(args.image_size))
    return 0


if __name__ == "__main__":
    sys.exit(main())
