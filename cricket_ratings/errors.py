"""
Error taxonomy for the ratings engine.

Aggregation and design errors abort a fit. Optimizer errors carry the last
valid parameter estimate so callers can inspect it, but it is never returned
as the answer.
"""

from __future__ import annotations

from typing import Optional

import numpy as np


class RatingsError(Exception):
    """Base class for all ratings engine errors."""


class DataShapeError(RatingsError):
    """Malformed or incomplete input records."""


class IdentifiabilityError(RatingsError):
    """A competitor column has no mass against the reference competitor."""


class FitError(RatingsError):
    """Optimizer failure with the last valid estimate attached."""

    def __init__(
        self,
        message: str,
        last_params: Optional[np.ndarray] = None,
        iterations: int = 0,
    ):
        super().__init__(message)
        self.last_params = last_params
        self.iterations = iterations


class ConvergenceError(FitError):
    """Iteration cap reached without meeting the tolerance."""


class NumericalError(FitError):
    """Singular information matrix or non-finite log-likelihood."""
