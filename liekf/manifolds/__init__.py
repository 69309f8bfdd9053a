"""
Lie group primitives for on-manifold estimation.

Provides:
    - SE2: planar rigid motions, tangent (v_x, v_y, ω)
    - Rn: vector group under addition
    - Bundle: direct product of the above, block-diagonal tangent
    - weighted_norm: ||τ||_W for tangent errors
    - small_angle: the single home of the small-angle threshold and series
"""

from liekf.manifolds.base import LieGroup, weighted_norm
from liekf.manifolds.bundle import Bundle
from liekf.manifolds.rn import Rn
from liekf.manifolds.se2 import SE2
from liekf.manifolds.small_angle import SMALL_ANGLE_THRESHOLD

__all__ = [
    "LieGroup",
    "SE2",
    "Rn",
    "Bundle",
    "weighted_norm",
    "SMALL_ANGLE_THRESHOLD",
]
