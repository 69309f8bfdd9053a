"""Composite (bundle) Lie group built as a direct product of elements.

A Bundle holds a fixed, ordered tuple of group elements. Its tangent is
the concatenation of the element tangents, so Exp, Log, the plus/minus
retractions, the adjoint and all Jacobians are block-diagonal.

Example:
    >>> X = Bundle(SE2(1.0, 0.0, 0.3), Rn([0.15, 0.15, 0.4]))
    >>> X.dof
    6
    >>> X.rplus(np.zeros(6)) == X
    True
"""

from typing import Sequence, Tuple

import numpy as np
from scipy.linalg import block_diag

from liekf.errors import DimensionError
from liekf.manifolds.base import LieGroup


class Bundle(LieGroup):
    """Direct product of Lie group elements."""

    def __init__(self, *elements: LieGroup):
        if len(elements) == 0:
            raise DimensionError("Bundle requires at least one element")
        for e in elements:
            if not isinstance(e, LieGroup) or isinstance(e, Bundle):
                raise TypeError(f"Bundle elements must be simple Lie groups, got {type(e).__name__}")
        self._elements: Tuple[LieGroup, ...] = tuple(elements)
        dofs = [e.dof for e in self._elements]
        self._offsets = tuple(int(o) for o in np.concatenate([[0], np.cumsum(dofs)]))

    def _rebuild(self, elements: Sequence[LieGroup]) -> "Bundle":
        # Preserves the concrete subclass (e.g. DiffDriveState)
        obj = self.__class__.__new__(self.__class__)
        Bundle.__init__(obj, *elements)
        return obj

    @property
    def dof(self) -> int:
        return self._offsets[-1]

    @property
    def size(self) -> int:
        """Number of elements."""
        return len(self._elements)

    def element(self, index: int) -> LieGroup:
        return self._elements[index]

    @property
    def elements(self) -> Tuple[LieGroup, ...]:
        return self._elements

    def tangent_slice(self, index: int) -> slice:
        """Slice of the composite tangent belonging to element ``index``."""
        return slice(self._offsets[index], self._offsets[index + 1])

    def _split(self, tau: np.ndarray):
        tau = np.asarray(tau, dtype=float)
        if tau.shape != (self.dof,):
            raise DimensionError(
                f"Bundle tangent must have shape ({self.dof},), got {tau.shape}"
            )
        return [tau[self.tangent_slice(i)] for i in range(self.size)]

    def _check(self, other: "Bundle") -> None:
        if not isinstance(other, Bundle) or other.size != self.size:
            raise TypeError("Bundles must have the same structure")
        for a, b in zip(self._elements, other._elements):
            if type(a) is not type(b) or a.dof != b.dof:
                raise TypeError("Bundles must have the same structure")

    def identity_like(self) -> "Bundle":
        return self.exp(np.zeros(self.dof))

    def exp(self, tau: np.ndarray) -> "Bundle":
        """Exponential map using this bundle's structure."""
        return self._rebuild(
            [e.exp(t) for e, t in zip(self._elements, self._split(tau))]
        )

    def log(self) -> np.ndarray:
        return np.concatenate([e.log() for e in self._elements])

    def compose(self, other: "Bundle") -> "Bundle":
        self._check(other)
        return self._rebuild(
            [a.compose(b) for a, b in zip(self._elements, other._elements)]
        )

    def inverse(self) -> "Bundle":
        return self._rebuild([e.inverse() for e in self._elements])

    def rplus(self, tau: np.ndarray) -> "Bundle":
        return self._rebuild(
            [e.rplus(t) for e, t in zip(self._elements, self._split(tau))]
        )

    def lplus(self, tau: np.ndarray) -> "Bundle":
        return self._rebuild(
            [e.lplus(t) for e, t in zip(self._elements, self._split(tau))]
        )

    def rminus(self, other: "Bundle") -> np.ndarray:
        self._check(other)
        return np.concatenate(
            [a.rminus(b) for a, b in zip(self._elements, other._elements)]
        )

    def lminus(self, other: "Bundle") -> np.ndarray:
        self._check(other)
        return np.concatenate(
            [a.lminus(b) for a, b in zip(self._elements, other._elements)]
        )

    def adj(self) -> np.ndarray:
        return block_diag(*[e.adj() for e in self._elements])

    def rjac(self, tau: np.ndarray) -> np.ndarray:
        return block_diag(
            *[e.rjac(t) for e, t in zip(self._elements, self._split(tau))]
        )

    def rjacinv(self, tau: np.ndarray) -> np.ndarray:
        return block_diag(
            *[e.rjacinv(t) for e, t in zip(self._elements, self._split(tau))]
        )

    def ljac(self, tau: np.ndarray) -> np.ndarray:
        return block_diag(
            *[e.ljac(t) for e, t in zip(self._elements, self._split(tau))]
        )

    def ljacinv(self, tau: np.ndarray) -> np.ndarray:
        return block_diag(
            *[e.ljacinv(t) for e, t in zip(self._elements, self._split(tau))]
        )

    def coeffs(self) -> np.ndarray:
        return np.concatenate([e.coeffs() for e in self._elements])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bundle) or other.size != self.size:
            return NotImplemented
        return all(a == b for a, b in zip(self._elements, other._elements))

    def __hash__(self) -> int:
        return hash(tuple(hash(e) for e in self._elements))

    def __repr__(self) -> str:
        inner = ", ".join(repr(e) for e in self._elements)
        return f"{self.__class__.__name__}({inner})"
