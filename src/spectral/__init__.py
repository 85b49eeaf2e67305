"""
Spectral motion-sickness pipeline.

JONSWAP synthesis, RAO tables, weighted motion PSDs and MSDV integration.
"""

from .advisory import ComfortAdvisor, ComfortAssessment, ComfortLimits, ComfortStatus
from .complex_pair import ComplexPair
from .dose import DoseIntegrator, MSDVResult
from .errors import (
    CalibrationNonConvergence,
    ComputationFault,
    InputValidationError,
    ParseError,
    SpectralError,
)
from .jonswap import CalibrationResult, SpectrumCurve, SpectrumSynthesizer, frequency_grid
from .pipeline import MotionSicknessPipeline, PipelineResult, position_key
from .psd import MotionPSDEngine, PSDTriplet
from .rao import (
    Dof,
    ResponseFunction,
    ResponseLibrary,
    ResponseTable,
    fold_heading,
    interpolate,
    nearest_bucket,
    parse_response_table,
)
from .runner import CoalescingRunner
from .sea_state import VesselState, WaveState

__all__ = [
    "ComfortAdvisor",
    "ComfortAssessment",
    "ComfortLimits",
    "ComfortStatus",
    "ComplexPair",
    "DoseIntegrator",
    "MSDVResult",
    "CalibrationNonConvergence",
    "ComputationFault",
    "InputValidationError",
    "ParseError",
    "SpectralError",
    "CalibrationResult",
    "SpectrumCurve",
    "SpectrumSynthesizer",
    "frequency_grid",
    "MotionSicknessPipeline",
    "PipelineResult",
    "position_key",
    "MotionPSDEngine",
    "PSDTriplet",
    "Dof",
    "ResponseFunction",
    "ResponseLibrary",
    "ResponseTable",
    "fold_heading",
    "interpolate",
    "nearest_bucket",
    "parse_response_table",
    "CoalescingRunner",
    "VesselState",
    "WaveState",
]
