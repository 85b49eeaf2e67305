"""
Exception taxonomy for the spectral pipeline.

- InputValidationError: bad sea state, bad frequency grid
- ParseError: malformed or missing response table
- CalibrationNonConvergence: JONSWAP alpha iteration exhausted (non-fatal)
- ComputationFault: non-finite values produced mid-pipeline
"""

from typing import List, Optional, Sequence

import numpy as np


class SpectralError(Exception):
    """Base class for all spectral pipeline errors."""


class InputValidationError(SpectralError, ValueError):
    """Invalid input: non-positive Hs/Tp, non-monotonic grid, etc."""


class ParseError(SpectralError):
    """Response table could not be parsed or located."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class CalibrationNonConvergence(SpectralError):
    """
    Alpha calibration did not reach tolerance.

    Carries the best alpha found so callers can still proceed.
    """

    def __init__(self, alpha: float, iterations: int, ratio: float):
        self.alpha = alpha
        self.iterations = iterations
        self.ratio = ratio
        super().__init__(
            f"JONSWAP alpha did not converge after {iterations} iterations "
            f"(alpha={alpha:.6g}, Hs ratio={ratio:.6g})"
        )


class ComputationFault(SpectralError):
    """
    Non-finite values appeared in a pipeline stage.

    Attributes:
        stage: Name of the stage that produced the values
        bins: Indices of the affected frequency bins
        substituted: The stage output with affected bins set to 0.0
    """

    def __init__(self, stage: str, bins: Sequence[int], substituted: np.ndarray):
        self.stage = stage
        self.bins: List[int] = [int(b) for b in bins]
        self.substituted = substituted
        super().__init__(
            f"Non-finite values in stage '{stage}' at {len(self.bins)} bin(s): "
            f"{self.bins[:10]}{'...' if len(self.bins) > 10 else ''}"
        )


def check_finite(stage: str, values: np.ndarray) -> np.ndarray:
    """
    Return values unchanged, or raise ComputationFault for non-finite bins.
    """
    values = np.asarray(values, dtype=float)
    bad = ~np.isfinite(values)
    if np.any(bad):
        substituted = np.where(bad, 0.0, values)
        raise ComputationFault(stage, np.flatnonzero(bad), substituted)
    return values
