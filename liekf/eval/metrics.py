"""
Error metrics and consistency statistics for on-manifold estimates.

Errors between group elements are taken in the right tangent of the
estimate, δ = X_true ⊟ X_est, which is the tangent the EKF, SEKF and UKFM
covariances live in (and the one IEKF covariances are mapped to by the
driver). NEES computed from these errors and the recorded covariances is
therefore comparable across variants.
"""

from typing import Dict, Optional, Sequence, Union

import numpy as np

from liekf.manifolds import Bundle, LieGroup, weighted_norm


def compute_position_errors(truth: np.ndarray, estimated: np.ndarray) -> np.ndarray:
    """
    Position error vectors, estimated - truth.

    Args:
        truth: True positions, shape (N, 2).
        estimated: Estimated positions, shape (N, 2).

    Returns:
        Error vectors, shape (N, 2).

    Raises:
        ValueError: If the shapes differ.
    """
    truth = np.asarray(truth, dtype=float)
    estimated = np.asarray(estimated, dtype=float)
    if truth.shape != estimated.shape:
        raise ValueError(f"Shape mismatch: truth {truth.shape} vs estimated {estimated.shape}")
    return estimated - truth


def compute_heading_errors(truth: np.ndarray, estimated: np.ndarray) -> np.ndarray:
    """Heading errors wrapped to (-π, π]."""
    diff = np.asarray(estimated, dtype=float) - np.asarray(truth, dtype=float)
    wrapped = np.arctan2(np.sin(diff), np.cos(diff))
    return np.where(wrapped <= -np.pi, wrapped + 2 * np.pi, wrapped)


def compute_rmse(errors: np.ndarray, axis: Optional[int] = None) -> Union[float, np.ndarray]:
    """
    Root mean square error.

    Args:
        errors: Errors, shape (N,) or (N, d).
        axis: None for a scalar over everything, 0 per component,
            1 per sample.
    """
    errors = np.asarray(errors, dtype=float)
    if axis is None:
        return float(np.sqrt(np.mean(errors**2)))
    return np.sqrt(np.mean(errors**2, axis=axis))


def compute_error_stats(errors: np.ndarray) -> Dict[str, float]:
    """
    Summary statistics of error magnitudes.

    Multi-dimensional errors are reduced to their Euclidean norm per row.

    Returns:
        Dictionary with 'mean', 'median', 'std', 'rmse', 'p95' and 'max'.
    """
    errors = np.asarray(errors, dtype=float)
    magnitudes = np.linalg.norm(errors, axis=1) if errors.ndim > 1 else np.abs(errors)
    return {
        "mean": float(np.mean(magnitudes)),
        "median": float(np.median(magnitudes)),
        "std": float(np.std(magnitudes)),
        "rmse": float(np.sqrt(np.mean(magnitudes**2))),
        "p95": float(np.percentile(magnitudes, 95)),
        "max": float(np.max(magnitudes)),
    }


def _matching(truth: LieGroup, estimate: LieGroup) -> LieGroup:
    # Pose-only estimates are compared with the pose block of the truth
    if isinstance(truth, Bundle) and not isinstance(estimate, Bundle):
        return truth.element(0)
    return truth


def compute_tangent_errors(
    true_states: Sequence[LieGroup], estimated_states: Sequence[LieGroup]
) -> np.ndarray:
    """
    Right-tangent errors δ_k = X_true,k ⊟ X_est,k.

    Args:
        true_states: True elements.
        estimated_states: Estimated elements, same length. A pose-only
            estimate is compared with the pose block of a composite truth.

    Returns:
        Errors, shape (N, n) with n the estimate's tangent dimension.
    """
    if len(true_states) != len(estimated_states):
        raise ValueError(
            f"Length mismatch: {len(true_states)} true vs {len(estimated_states)} estimated states"
        )
    return np.array(
        [_matching(t, e).rminus(e) for t, e in zip(true_states, estimated_states)]
    )


def weighted_error_norms(errors: np.ndarray, W: Optional[np.ndarray] = None) -> np.ndarray:
    """Per-row ||δ_k||_W (Euclidean when W is None)."""
    errors = np.atleast_2d(np.asarray(errors, dtype=float))
    return np.array([weighted_norm(e, W) for e in errors])


def compute_nees(errors: np.ndarray, covariances: np.ndarray) -> np.ndarray:
    """
    Normalised estimation error squared, ε_k = δ_kᵀ P_k⁻¹ δ_k.

    For a consistent estimator ε_k follows a χ² distribution with n
    degrees of freedom. Singular covariances give NaN.

    Args:
        errors: Tangent errors, shape (N, n).
        covariances: Covariances in the same tangent, shape (N, n, n).
    """
    errors = np.asarray(errors, dtype=float)
    covariances = np.asarray(covariances, dtype=float)
    N, n = errors.shape
    if covariances.shape != (N, n, n):
        raise ValueError(f"covariances must have shape ({N}, {n}, {n}), got {covariances.shape}")

    nees = np.full(N, np.nan)
    for k in range(N):
        try:
            nees[k] = errors[k] @ np.linalg.solve(covariances[k], errors[k])
        except np.linalg.LinAlgError:
            continue
    return nees


def compute_nis(innovations: np.ndarray, S: np.ndarray) -> np.ndarray:
    """
    Normalised innovation squared, r_kᵀ S_k⁻¹ r_k, from get_innovation().

    Args:
        innovations: Residuals, shape (N, m).
        S: Innovation covariances, shape (N, m, m).
    """
    innovations = np.atleast_2d(np.asarray(innovations, dtype=float))
    S = np.asarray(S, dtype=float)
    N, m = innovations.shape
    if S.shape != (N, m, m):
        raise ValueError(f"S must have shape ({N}, {m}, {m}), got {S.shape}")
    return np.array([r @ np.linalg.solve(s, r) for r, s in zip(innovations, S)])


def fraction_within(errors: np.ndarray, bound: float) -> float:
    """
    Fraction of samples whose error magnitude is within ``bound``.

    Rows of a 2-D array count as within when every component is.
    """
    errors = np.abs(np.asarray(errors, dtype=float))
    if errors.size == 0:
        raise ValueError("errors is empty")
    inside = np.all(errors <= bound, axis=1) if errors.ndim > 1 else errors <= bound
    return float(np.mean(inside))
