"""JSON run-configuration loading."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from facerecon.core.state import OptimizationParameters

_REQUIRED_KEYS = (
    "model", "prior_identity", "prior_expression", "mesh",
    "landmarks", "indices", "contour_indices", "image_size",
)


def load_json(path: Path) -> Any:
    """Load and return parsed JSON from a file."""
    with open(path) as f:
        return json.load(f)


@dataclass
class ReconstructionConfig:
    """File locations and settings for one reconstruction run.

    Relative paths are resolved against ``base_dir`` (the directory holding
    the config file).
    """
    model_path: Path
    prior_identity_path: Path
    prior_expression_path: Path
    mesh_path: Path
    landmarks_path: Path
    indices_path: Path
    contour_indices_path: Path
    image_width: int
    image_height: int
    optimization: OptimizationParameters = field(default_factory=OptimizationParameters)
    output_dir: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Path) -> "ReconstructionConfig":
        missing = [k for k in _REQUIRED_KEYS if k not in data]
        if missing:
            raise ValueError(f"Config is missing required keys: {', '.join(missing)}")

        size = data["image_size"]
        if len(size) != 2 or int(size[0]) <= 0 or int(size[1]) <= 0:
            raise ValueError(f"image_size must be two positive integers, got {size!r}")

        def _resolve(p: str) -> Path:
            path = Path(p)
            return path if path.is_absolute() else base_dir / path

        output_dir = data.get("output_dir")
        return cls(
            model_path=_resolve(data["model"]),
            prior_identity_path=_resolve(data["prior_identity"]),
            prior_expression_path=_resolve(data["prior_expression"]),
            mesh_path=_resolve(data["mesh"]),
            landmarks_path=_resolve(data["landmarks"]),
            indices_path=_resolve(data["indices"]),
            contour_indices_path=_resolve(data["contour_indices"]),
            image_width=int(size[0]),
            image_height=int(size[1]),
            optimization=OptimizationParameters.from_dict(data.get("optimization", {})),
            output_dir=_resolve(output_dir) if output_dir is not None else None,
        )


def load_reconstruction_config(path: Path) -> ReconstructionConfig:
    """Load a run config JSON file."""
    path = Path(path)
    return ReconstructionConfig.from_dict(load_json(path), path.parent)
