"""
Plots for self-calibration runs.

All functions return matplotlib Figure objects; nothing is shown or saved
implicitly. Use save_figure() to write them to disk.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np

COLORS = ["blue", "red", "green", "orange", "purple"]
LINESTYLES = ["-", "--", "-.", ":", "-"]


def plot_trajectory_2d(
    truth_xy: np.ndarray,
    est_xy_dict: Dict[str, np.ndarray],
    landmarks_xy: Optional[np.ndarray] = None,
    title: str = "Differential-drive trajectory",
) -> plt.Figure:
    """
    True path, estimated paths and landmarks in the plane.

    Args:
        truth_xy: True positions, shape (N, 2).
        est_xy_dict: Estimated (or dead-reckoned) positions by name.
        landmarks_xy: Landmark positions, shape (M, 2).
        title: Plot title.
    """
    fig, ax = plt.subplots(figsize=(9, 8))

    ax.plot(truth_xy[:, 0], truth_xy[:, 1], "k-", linewidth=2, label="Ground Truth", zorder=10)
    ax.plot(truth_xy[0, 0], truth_xy[0, 1], "go", markersize=9, label="Start", zorder=11)

    for i, (name, est_xy) in enumerate(est_xy_dict.items()):
        ax.plot(
            est_xy[:, 0],
            est_xy[:, 1],
            linestyle=LINESTYLES[i % len(LINESTYLES)],
            color=COLORS[i % len(COLORS)],
            linewidth=1.2,
            label=name,
            alpha=0.8,
        )

    if landmarks_xy is not None and len(landmarks_xy):
        landmarks_xy = np.asarray(landmarks_xy)
        ax.plot(landmarks_xy[:, 0], landmarks_xy[:, 1], "s", color="black", markersize=8, label="Landmarks")

    ax.set_xlabel("X (m)", fontsize=12)
    ax.set_ylabel("Y (m)", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)
    ax.axis("equal")

    plt.tight_layout()
    return fig


def plot_pose_errors(
    times: np.ndarray,
    errors_dict: Dict[str, np.ndarray],
    sigma_dict: Optional[Dict[str, np.ndarray]] = None,
    title: str = "Pose error (right tangent)",
) -> plt.Figure:
    """
    Tangent pose errors (v_x, v_y, ω) over time with optional ±3σ bounds.

    Args:
        times: Time grid (N,).
        errors_dict: Errors by name, shape (N, ≥3); the first three
            columns are plotted.
        sigma_dict: Standard deviations by name, shape (N, ≥3).
        title: Figure title.
    """
    labels = [("x", "m"), ("y", "m"), ("θ", "rad")]
    fig, axes = plt.subplots(3, 1, figsize=(12, 10), sharex=True)

    for i, (ax, (label, unit)) in enumerate(zip(axes, labels)):
        for j, (name, errors) in enumerate(errors_dict.items()):
            color = COLORS[j % len(COLORS)]
            ax.plot(times, errors[:, i], color=color, linewidth=1.0, label=name)
            if sigma_dict is not None and name in sigma_dict:
                bound = 3.0 * sigma_dict[name][:, i]
                ax.plot(times, bound, color=color, linestyle=":", linewidth=0.8)
                ax.plot(times, -bound, color=color, linestyle=":", linewidth=0.8)
        ax.set_ylabel(f"{label} error ({unit})", fontsize=11)
        ax.grid(True, alpha=0.3)
        ax.axhline(y=0, color="k", linestyle="--", linewidth=0.8, alpha=0.5)
    axes[0].legend(fontsize=9)
    axes[-1].set_xlabel("Time (s)", fontsize=11)

    fig.suptitle(title, fontsize=14, fontweight="bold")
    plt.tight_layout()
    return fig


def plot_calibration_tracking(
    times: np.ndarray,
    true_calibration: np.ndarray,
    est_calibration_dict: Dict[str, np.ndarray],
    sigma_dict: Optional[Dict[str, np.ndarray]] = None,
    jump_times: Tuple[float, ...] = (),
    title: str = "Calibration tracking",
) -> plt.Figure:
    """
    True and estimated (r_l, r_r, d_w) over time.

    Args:
        times: Time grid (N,).
        true_calibration: True parameters, shape (N, 3).
        est_calibration_dict: Estimated parameters by name, shape (N, 3).
        sigma_dict: Standard deviations by name, shape (N, 3); drawn as a
            ±3σ band.
        jump_times: Times of scripted parameter jumps, marked with
            vertical lines.
        title: Figure title.
    """
    labels = ["Left wheel radius (m)", "Right wheel radius (m)", "Wheel separation (m)"]
    fig, axes = plt.subplots(3, 1, figsize=(12, 10), sharex=True)

    for i, (ax, label) in enumerate(zip(axes, labels)):
        ax.plot(times, true_calibration[:, i], "k-", linewidth=2, label="Ground Truth")
        for j, (name, calibration) in enumerate(est_calibration_dict.items()):
            color = COLORS[j % len(COLORS)]
            ax.plot(times, calibration[:, i], color=color, linewidth=1.2, label=name)
            if sigma_dict is not None and name in sigma_dict:
                bound = 3.0 * sigma_dict[name][:, i]
                ax.fill_between(
                    times,
                    calibration[:, i] - bound,
                    calibration[:, i] + bound,
                    color=color,
                    alpha=0.15,
                )
        for t in jump_times:
            ax.axvline(x=t, color="gray", linestyle="--", linewidth=1.0)
        ax.set_ylabel(label, fontsize=11)
        ax.grid(True, alpha=0.3)
    axes[0].legend(fontsize=9)
    axes[-1].set_xlabel("Time (s)", fontsize=11)

    fig.suptitle(title, fontsize=14, fontweight="bold")
    plt.tight_layout()
    return fig


def save_figure(
    fig: plt.Figure,
    out_dir: Union[str, Path],
    name: str,
    formats: Tuple[str, ...] = ("png", "svg"),
) -> List[Path]:
    """
    Save a figure once per format.

    Returns:
        Paths of the written files.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for fmt in formats:
        path = out_dir / f"{name}.{fmt}"
        fig.savefig(path, dpi=150, bbox_inches="tight")
        paths.append(path)
    return paths
