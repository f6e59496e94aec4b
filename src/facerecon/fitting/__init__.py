"""Fitting subsystem -- camera model, residuals, solver and the reconstructor."""

from facerecon.fitting.camera import CameraParameters, project_point, project_points, view_matrix
from facerecon.fitting.contour import find_silhouette_candidates, update_contour_correspondences
from facerecon.fitting.costs import ExpressionCost, IdentityCost, PoseCost, PriorCost
from facerecon.fitting.reconstructor import SingleImageReconstructor, Stage
from facerecon.fitting.solver import Problem, SolveSummary

__all__ = [
    "CameraParameters",
    "ExpressionCost",
    "IdentityCost",
    "PoseCost",
    "PriorCost",
    "Problem",
    "SingleImageReconstructor",
    "SolveSummary",
    "Stage",
    "find_silhouette_candidates",
    "project_point",
    "project_points",
    "update_contour_correspondences",
    "view_matrix",
]
