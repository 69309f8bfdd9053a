"""
Structured error values raised by the estimation core.

The core never logs. Every abnormal condition surfaces from the call that
provoked it as one of the exceptions below, carrying the values a caller
needs to decide whether to retry (e.g. with an inflated R) or to reset the
estimator to a safe prior.

Hierarchy:
    EstimationError
        NumericalError              - transactional, estimator state unchanged
            NonFiniteCovarianceError
            InnovationCovarianceError
            KarcherMeanConvergenceError
        DomainError                 - invalid physical input
        ProgrammerError             - misuse of the API
            ReentrancyError
            DimensionError
"""

from typing import Optional

import numpy as np


class EstimationError(RuntimeError):
    """Base class for all errors raised by the estimation core."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class NumericalError(EstimationError):
    """Numeric failure; the estimator left its state untouched."""


class NonFiniteCovarianceError(NumericalError):
    """The covariance (or its square-root factor) became non-finite."""


class InnovationCovarianceError(NumericalError):
    """The innovation covariance S is not positive definite."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        eigenvalues: Optional[np.ndarray] = None,
    ):
        super().__init__(message, operation)
        self.eigenvalues = eigenvalues


class KarcherMeanConvergenceError(NumericalError):
    """The iterative on-manifold mean did not converge within the cap."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        iterations: int = 0,
        residual: float = float("nan"),
    ):
        super().__init__(message, operation)
        self.iterations = iterations
        self.residual = residual


class DomainError(EstimationError, ValueError):
    """Physically invalid input (non-positive calibration, non-PSD R)."""


class ProgrammerError(EstimationError):
    """The estimator was used in a way the contract forbids."""


class ReentrancyError(ProgrammerError):
    """An estimator was called back from inside one of its own model calls."""


class DimensionError(ProgrammerError, ValueError):
    """Array shapes do not match the state or measurement dimension."""
