"""
JONSWAP wave spectrum synthesis.

Builds a one-sided wave-elevation spectral density S(w) from significant
wave height and peak period. The Phillips constant alpha is calibrated by
fixed-point iteration so that the zeroth spectral moment reproduces Hs:

    S(w) = alpha * g^2 * w^-5 * exp(-1.25 * (wp/w)^4) * gamma^r
    r    = exp(-(w - wp)^2 / (2 * sigma^2 * wp^2))
    sigma = 0.07 (w <= wp), 0.09 (w > wp)
    Hs   = 4 * sqrt(m0)

References:
- Hasselmann et al. (1973) "Measurements of wind-wave growth and swell
  decay during the Joint North Sea Wave Project (JONSWAP)"
- DNV-RP-C205 "Environmental Conditions and Environmental Loads", 3.5.5
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.integrate import trapezoid

from src.config import SpectralSettings
from src.metrics import metrics
from src.spectral.errors import CalibrationNonConvergence
from src.spectral.sea_state import WaveState, validate_sea_state

logger = logging.getLogger(__name__)

SIGMA_LOW = 0.07   # Spectral width below the peak
SIGMA_HIGH = 0.09  # Spectral width above the peak


@dataclass(frozen=True)
class CalibrationResult:
    """Outcome of the alpha fixed-point iteration."""
    alpha: float
    iterations: int
    converged: bool
    ratio: float  # Hs / Hs_est at the returned alpha


@dataclass(frozen=True)
class SpectrumCurve:
    """Calibrated wave-elevation spectrum on the fixed frequency grid."""
    frequencies: np.ndarray  # rad/s, ascending
    density: np.ndarray      # m^2/(rad/s)
    Hs: float
    Tp: float
    alpha: float
    converged: bool
    iterations: int

    @property
    def peak_frequency_rad(self) -> float:
        return 2.0 * math.pi / self.Tp

    @property
    def m0(self) -> float:
        """Zeroth spectral moment (m^2)."""
        return float(trapezoid(self.density, self.frequencies))

    @property
    def significant_height_m(self) -> float:
        """Hs implied by the curve, 4 * sqrt(m0)."""
        return 4.0 * math.sqrt(max(self.m0, 0.0))


def frequency_grid(step: float = 0.01, points: int = 600) -> np.ndarray:
    """Fixed angular frequency grid, step .. points*step rad/s."""
    grid = np.round(np.arange(1, points + 1) * step, 10)
    grid.setflags(write=False)
    return grid


def jonswap_density(
    omega: np.ndarray,
    alpha: float,
    Tp: float,
    gamma: float = 3.3,
    g: float = 9.81,
) -> np.ndarray:
    """
    Evaluate the JONSWAP spectral density for a given alpha.

    Args:
        omega: Angular frequencies (rad/s), strictly positive
        alpha: Phillips constant
        Tp: Peak period (s)
        gamma: Peak enhancement factor
        g: Gravitational acceleration (m/s^2)

    Returns:
        Spectral density S(w) in m^2/(rad/s)
    """
    omega = np.asarray(omega, dtype=float)
    omega_p = 2.0 * math.pi / Tp

    sigma = np.where(omega <= omega_p, SIGMA_LOW, SIGMA_HIGH)
    pm_shape = np.exp(-1.25 * (omega_p / omega) ** 4)
    r = np.exp(-((omega - omega_p) ** 2) / (2.0 * sigma**2 * omega_p**2))

    return alpha * g**2 * omega**-5.0 * pm_shape * gamma**r


class SpectrumSynthesizer:
    """
    Synthesizes calibrated JONSWAP spectra.

    Usage:
        synthesizer = SpectrumSynthesizer()
        curve = synthesizer.synthesize(Hs=4.59, Tp=14.24)
        print(f"alpha={curve.alpha:.5f}, Hs check={curve.significant_height_m:.3f}")
    """

    def __init__(self, settings: Optional[SpectralSettings] = None):
        self.settings = settings or SpectralSettings()
        self.grid = frequency_grid(self.settings.grid_step, self.settings.grid_points)

    def calibrate_alpha(
        self,
        Hs: float,
        Tp: float,
        gamma: Optional[float] = None,
        g: Optional[float] = None,
    ) -> CalibrationResult:
        """
        Find alpha such that 4*sqrt(m0) matches Hs.

        Each iteration scales alpha by Hs/Hs_est. Because Hs_est grows with
        sqrt(alpha), the ratio error halves in log space per step.

        Returns:
            CalibrationResult; converged=False when the iteration cap is
            reached or the grid carries no spectral energy.
        """
        validate_sea_state(Hs, Tp)
        gamma = self.settings.gamma if gamma is None else gamma
        g = self.settings.gravity if g is None else g

        alpha = self.settings.alpha_initial
        best_alpha, best_ratio = alpha, math.inf
        iterations = 0

        for iterations in range(1, self.settings.alpha_max_iter + 1):
            density = jonswap_density(self.grid, alpha, Tp, gamma, g)
            m0 = float(trapezoid(density, self.grid))

            if not math.isfinite(m0) or m0 <= 0.0:
                logger.warning(
                    f"No spectral energy on grid for Hs={Hs}, Tp={Tp} "
                    f"(m0={m0}), cannot calibrate alpha"
                )
                break

            ratio = Hs / (4.0 * math.sqrt(m0))
            if abs(ratio - 1.0) < abs(best_ratio - 1.0):
                best_alpha, best_ratio = alpha, ratio

            if abs(ratio - 1.0) < self.settings.alpha_tolerance:
                return CalibrationResult(alpha, iterations, True, ratio)

            alpha *= ratio

        return CalibrationResult(best_alpha, iterations, False, best_ratio)

    def synthesize(self, Hs: float, Tp: float, strict: bool = False) -> SpectrumCurve:
        """
        Build the calibrated spectrum for a sea state.

        Args:
            Hs: Significant wave height (m), > 0
            Tp: Peak period (s), > 0
            strict: Raise CalibrationNonConvergence instead of degrading

        Returns:
            SpectrumCurve on the fixed grid

        Raises:
            InputValidationError: Hs or Tp not finite and positive
            CalibrationNonConvergence: only when strict=True
        """
        with metrics.timer("jonswap_synthesis"):
            calibration = self.calibrate_alpha(Hs, Tp)

            if not calibration.converged:
                metrics.increment("calibration_nonconvergence")
                logger.warning(
                    f"JONSWAP calibration degraded for Hs={Hs:.3f} m, Tp={Tp:.3f} s: "
                    f"alpha={calibration.alpha:.6g} after {calibration.iterations} iterations"
                )
                if strict:
                    raise CalibrationNonConvergence(
                        calibration.alpha, calibration.iterations, calibration.ratio
                    )

            density = jonswap_density(
                self.grid, calibration.alpha, Tp, self.settings.gamma, self.settings.gravity
            )
            density = np.clip(density, 0.0, None)
            density.setflags(write=False)

        metrics.set_gauge("jonswap_alpha", calibration.alpha)
        logger.debug(
            f"Synthesized JONSWAP spectrum Hs={Hs:.3f} m, Tp={Tp:.3f} s, "
            f"alpha={calibration.alpha:.6g} ({calibration.iterations} iterations)"
        )

        return SpectrumCurve(
            frequencies=self.grid,
            density=density,
            Hs=Hs,
            Tp=Tp,
            alpha=calibration.alpha,
            converged=calibration.converged,
            iterations=calibration.iterations,
        )

    def synthesize_state(self, wave: WaveState, strict: bool = False) -> SpectrumCurve:
        """Convenience wrapper taking a WaveState."""
        return self.synthesize(wave.significant_height_m, wave.peak_period_s, strict=strict)
