"""
Evaluation and visualization of self-calibration runs.

Modules:
    metrics: position/tangent errors, RMSE, NEES, NIS
    plots: trajectories, pose errors and calibration tracking
"""

from .metrics import (
    compute_error_stats,
    compute_heading_errors,
    compute_nees,
    compute_nis,
    compute_position_errors,
    compute_rmse,
    compute_tangent_errors,
    fraction_within,
    weighted_error_norms,
)
from .plots import (
    plot_calibration_tracking,
    plot_pose_errors,
    plot_trajectory_2d,
    save_figure,
)

__all__ = [
    # Metrics
    "compute_position_errors",
    "compute_heading_errors",
    "compute_rmse",
    "compute_error_stats",
    "compute_tangent_errors",
    "weighted_error_norms",
    "compute_nees",
    "compute_nis",
    "fraction_within",
    # Plots
    "plot_trajectory_2d",
    "plot_pose_errors",
    "plot_calibration_tracking",
    "save_figure",
]
