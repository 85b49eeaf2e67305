"""
Motion power spectral densities.

Combines the wave spectrum with heave and pitch response functions into
displacement, acceleration and ISO 2631-1 Wf-weighted PSDs, and projects
them onto vertical motion at longitudinal hull positions:

    S_yy(L) = S_heave + L^2 * S_pitch + 2 * L * S_cross

The Wf weighting is the product of four transfer functions evaluated at
s = i*w:

    Hh  high-pass      f1 = 0.08 Hz, zeta = 1/sqrt(2)
    Hl  low-pass       f2 = 0.63 Hz, zeta = 1/sqrt(2)
    Ht  transition     zero f3 = 3.5 Hz, pole f4 = 0.25 Hz, zeta = 0.86
    Hs  upward step    zero f5 = 0.06 Hz, pole f6 = 0.10 Hz, zeta = 0.80

References:
- ISO 2631-1:1997 "Mechanical vibration and shock - Evaluation of human
  exposure to whole-body vibration", Annex A
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from src.metrics import metrics
from src.spectral.complex_pair import ComplexPair
from src.spectral.errors import ComputationFault, InputValidationError, check_finite
from src.spectral.jonswap import SpectrumCurve
from src.spectral.rao import ResponseFunction, interpolate

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi

# Wf filter constants (angular frequency, damping)
OMEGA_1, ZETA_1 = TWO_PI * 0.08, 1.0 / math.sqrt(2.0)
OMEGA_2, ZETA_2 = TWO_PI * 0.63, 1.0 / math.sqrt(2.0)
OMEGA_3 = TWO_PI * 3.5
OMEGA_4, ZETA_4 = TWO_PI * 0.25, 0.86
OMEGA_5, ZETA_5 = TWO_PI * 0.06, 0.80
OMEGA_6, ZETA_6 = TWO_PI * 0.10, 0.80


@dataclass(frozen=True)
class PSDTriplet:
    """Heave, pitch and heave-pitch cross PSDs on a common frequency grid."""
    heave: np.ndarray
    pitch: np.ndarray
    cross: np.ndarray

    def __post_init__(self):
        if not (len(self.heave) == len(self.pitch) == len(self.cross)):
            raise InputValidationError(
                f"PSD length mismatch: heave {len(self.heave)}, "
                f"pitch {len(self.pitch)}, cross {len(self.cross)}"
            )

    def __len__(self) -> int:
        return len(self.heave)

    def to_dict(self) -> Dict[str, list]:
        return {
            "heave": self.heave.tolist(),
            "pitch": self.pitch.tolist(),
            "cross": self.cross.tolist(),
        }


def validate_grid(frequencies: Sequence[float]) -> np.ndarray:
    """
    Require a strictly positive, strictly increasing frequency grid.

    Raises:
        InputValidationError: otherwise
    """
    grid = np.asarray(frequencies, dtype=float)
    if grid.ndim != 1:
        raise InputValidationError("Frequency grid must be one-dimensional")
    if len(grid) == 0:
        return grid
    if not np.all(np.isfinite(grid)) or grid[0] <= 0.0:
        raise InputValidationError("Frequency grid must be finite and strictly positive")
    if not np.all(np.diff(grid) > 0):
        raise InputValidationError("Frequency grid must be strictly increasing")
    return grid


def _second_order(s: ComplexPair, omega: float, zeta: float) -> ComplexPair:
    """s^2 + 2*zeta*omega*s + omega^2"""
    return s * s + (2.0 * zeta * omega) * s + omega * omega


def wf_transfer(w: float) -> ComplexPair:
    """Complex Wf weighting Hh*Hl*Ht*Hs at angular frequency w (rad/s)."""
    s = ComplexPair(0.0, w)

    hh = (s * s) / _second_order(s, OMEGA_1, ZETA_1)
    hl = ComplexPair(OMEGA_2 * OMEGA_2) / _second_order(s, OMEGA_2, ZETA_2)
    ht = ((OMEGA_4 * OMEGA_4 / OMEGA_3) * s + OMEGA_4 * OMEGA_4) / _second_order(s, OMEGA_4, ZETA_4)
    hs = _second_order(s, OMEGA_5, ZETA_5) / _second_order(s, OMEGA_6, ZETA_6)

    return (hh * hl) * (ht * hs)


def guard_finite(
    stage: str,
    values: np.ndarray,
    faults: Optional[List[ComputationFault]] = None,
) -> np.ndarray:
    """
    check_finite, absorbing the fault when a collector list is given.

    Absorbed faults are logged, counted and appended to `faults`; the
    zero-substituted series is returned in place of the stage output.
    """
    try:
        return check_finite(stage, values)
    except ComputationFault as fault:
        if faults is None:
            raise
        logger.warning(f"{fault}; continuing with 0.0 in affected bins")
        metrics.increment("computation_faults")
        faults.append(fault)
        return fault.substituted


class MotionPSDEngine:
    """
    Computes weighted vertical-motion PSDs from a wave spectrum and RAOs.

    Stateless; one instance can serve any number of pipeline runs. Each
    stage raises ComputationFault on non-finite output unless a `faults`
    list is passed, in which case the fault is recorded and the stage
    continues with zeros in the affected bins.

    Usage:
        engine = MotionPSDEngine()
        spectrum = engine.interpolate_spectrum(curve, heave)
        disp = engine.displacement_psds(spectrum, heave, pitch)
        accel = engine.acceleration_psds(heave.frequencies, disp)
        weighted = engine.weighted_psds(heave.frequencies, accel)
        vertical = engine.vertical_motion_psd([0.0, 50.0], weighted)
    """

    def interpolate_spectrum(
        self, curve: SpectrumCurve, response: ResponseFunction
    ) -> np.ndarray:
        """Resample the wave spectrum onto the response grid."""
        validate_grid(response.frequencies)
        return interpolate(curve.frequencies, curve.density, response.frequencies)

    def displacement_psds(
        self,
        spectrum: Sequence[float],
        heave: ResponseFunction,
        pitch: ResponseFunction,
        faults: Optional[List[ComputationFault]] = None,
    ) -> PSDTriplet:
        """
        Displacement PSDs from the wave spectrum on the response grid.

        heave = A_h^2 * S, pitch = A_p^2 * S,
        cross = A_h * A_p * cos(phi_h - phi_p) * S

        Raises:
            InputValidationError: array lengths differ
            ComputationFault: non-finite output and no `faults` collector
        """
        S = np.asarray(spectrum, dtype=float)
        n = len(S)
        if not (len(heave.amplitude) == len(pitch.amplitude) == n):
            raise InputValidationError(
                f"Length mismatch: spectrum {n}, heave {len(heave.amplitude)}, "
                f"pitch {len(pitch.amplitude)}"
            )

        phase_diff = np.radians(heave.phase_deg - pitch.phase_deg)

        return PSDTriplet(
            heave=guard_finite("displacement_heave", heave.amplitude**2 * S, faults),
            pitch=guard_finite("displacement_pitch", pitch.amplitude**2 * S, faults),
            cross=guard_finite(
                "displacement_cross",
                heave.amplitude * pitch.amplitude * np.cos(phase_diff) * S,
                faults,
            ),
        )

    def acceleration_psds(
        self,
        frequencies: Sequence[float],
        displacement: PSDTriplet,
        faults: Optional[List[ComputationFault]] = None,
    ) -> PSDTriplet:
        """
        Acceleration PSDs.

        Heave is scaled by (2*pi*f)^4, pitch and cross by f^4.
        """
        f = validate_grid(frequencies)
        if len(f) != len(displacement):
            raise InputValidationError(
                f"Grid has {len(f)} points, PSDs have {len(displacement)}"
            )

        return PSDTriplet(
            heave=guard_finite("acceleration_heave", displacement.heave * (TWO_PI * f) ** 4, faults),
            pitch=guard_finite("acceleration_pitch", displacement.pitch * f**4, faults),
            cross=guard_finite("acceleration_cross", displacement.cross * f**4, faults),
        )

    def wf_weighting_squared(self, frequencies: Sequence[float]) -> np.ndarray:
        """|Wf(i*w)|^2 per grid point."""
        omega = np.asarray(frequencies, dtype=float)
        return np.array([abs(wf_transfer(float(w))) ** 2 for w in omega], dtype=float)

    def apply_frequency_weighting(
        self,
        frequencies: Sequence[float],
        psd: Sequence[float],
        stage: str = "weighting",
        faults: Optional[List[ComputationFault]] = None,
    ) -> np.ndarray:
        """Weight a PSD by |Wf|^2."""
        f = validate_grid(frequencies)
        psd = np.asarray(psd, dtype=float)
        if len(f) != len(psd):
            raise InputValidationError(f"Grid has {len(f)} points, PSD has {len(psd)}")
        return guard_finite(stage, self.wf_weighting_squared(f) * psd, faults)

    def weighted_psds(
        self,
        frequencies: Sequence[float],
        acceleration: PSDTriplet,
        faults: Optional[List[ComputationFault]] = None,
    ) -> PSDTriplet:
        """Apply the Wf weighting to all three acceleration PSDs."""
        f = validate_grid(frequencies)
        if len(f) != len(acceleration):
            raise InputValidationError(
                f"Grid has {len(f)} points, PSDs have {len(acceleration)}"
            )
        w2 = self.wf_weighting_squared(f)
        return PSDTriplet(
            heave=guard_finite("weighting_heave", w2 * acceleration.heave, faults),
            pitch=guard_finite("weighting_pitch", w2 * acceleration.pitch, faults),
            cross=guard_finite("weighting_cross", w2 * acceleration.cross, faults),
        )

    def vertical_motion_psd(
        self,
        positions: Sequence[float],
        weighted: PSDTriplet,
        faults: Optional[List[ComputationFault]] = None,
    ) -> Dict[float, np.ndarray]:
        """Vertical motion PSD at each longitudinal position L (m from midships)."""
        return {
            float(L): guard_finite(
                f"vertical_{L:g}",
                weighted.heave + L * L * weighted.pitch + 2.0 * L * weighted.cross,
                faults,
            )
            for L in positions
        }
