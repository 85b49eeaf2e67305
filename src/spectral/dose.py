"""
Motion Sickness Dose Value (MSDV) integration.

    MSDV(L) = sqrt( integral S_yy,w(L, w) dw )

S_yy,w is the Wf-weighted vertical acceleration PSD at hull position L.
The integral is trapezoidal over the (possibly non-uniform) response grid.
No exposure-time multiplier is applied, so the value is a dose rate
comparable across positions and sea states rather than an ISO 2631-1
exposure dose.
"""

import logging
import math
from typing import Dict, Mapping, Optional, Sequence

import numpy as np
from scipy.integrate import trapezoid

from src.metrics import metrics
from src.spectral.errors import InputValidationError

logger = logging.getLogger(__name__)

MSDVResult = Dict[float, Optional[float]]


class DoseIntegrator:
    """Integrates weighted vertical PSDs into per-position MSDV."""

    def msdv(
        self,
        weighted_by_position: Mapping[float, Sequence[float]],
        frequencies: Sequence[float],
    ) -> MSDVResult:
        """
        Args:
            weighted_by_position: Position (m) -> weighted vertical PSD
            frequencies: Ascending grid (rad/s) shared by all PSDs

        Returns:
            Position -> MSDV (m/s^1.5). None marks a position whose
            integral was not finite; other positions are unaffected.

        Raises:
            InputValidationError: grid not ascending, or PSD length differs
        """
        grid = np.asarray(frequencies, dtype=float)

        if len(grid) < 2:
            return {float(pos): 0.0 for pos in weighted_by_position}

        if not np.all(np.diff(grid) >= 0):
            raise InputValidationError("MSDV frequency grid must be ascending")

        result: MSDVResult = {}
        for position, psd in weighted_by_position.items():
            psd = np.asarray(psd, dtype=float)
            if len(psd) != len(grid):
                raise InputValidationError(
                    f"PSD at {position} m has {len(psd)} points, grid has {len(grid)}"
                )

            integral = float(trapezoid(psd, grid))
            if not math.isfinite(integral):
                logger.warning(f"Non-finite MSDV integral at {position:g} m, leaving blank")
                metrics.increment("computation_faults")
                result[float(position)] = None
                continue

            result[float(position)] = math.sqrt(max(integral, 0.0))

        return result
