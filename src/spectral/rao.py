"""
Response Amplitude Operator (RAO) tables.

Loads the vessel's precomputed heave and pitch frequency-response functions
per (speed, heading), normalizes and unwraps their phases, and caches them
as read-only objects shared by all pipeline runs.

Table format (one file per degree of freedom and speed, <dof>_<speed>.rao):

    #HEADING 0 30 60 90 120 150 180
    ...
    w(r/s)  amp(0) ... amp(180)  phase(0) ... phase(180)
    0.10    1.000  ...           0.0      ...

Heave amplitudes are in m/m, pitch amplitudes in rad/m, phases in degrees.

Nearest-bucket selection: speeds resolve to the closest supported speed,
headings are folded into [0, 180] and resolve to the closest heading
bucket. When two candidates are equidistant the lower one wins.
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from src.metrics import metrics
from src.spectral.errors import InputValidationError, ParseError

logger = logging.getLogger(__name__)

HEADING_MARKER = "#HEADING"
DATA_MARKER = "w(r/s)"

DEFAULT_SPEEDS_KTS = (0.0, 4.0, 8.0, 10.0, 12.0, 14.0, 16.0)
DEFAULT_HEADINGS_DEG = (0.0, 30.0, 60.0, 90.0, 120.0, 150.0, 180.0)


class Dof(Enum):
    """Degree of freedom covered by a response table."""
    HEAVE = "heave"
    PITCH = "pitch"


@dataclass(frozen=True)
class ResponseFunction:
    """
    Frequency response for one DOF at one (speed, heading) bucket.

    Arrays are read-only; instances are shared between threads.
    """
    dof: Dof
    speed_kts: float
    heading_deg: float
    frequencies: np.ndarray  # rad/s, strictly increasing
    amplitude: np.ndarray    # m/m (heave) or rad/m (pitch)
    phase_deg: np.ndarray    # unwrapped, continuous
    source: str = ""

    def __len__(self) -> int:
        return len(self.frequencies)


@dataclass(frozen=True)
class ResponseTable:
    """Parsed table: all heading columns for one (DOF, speed) file."""
    headings: Tuple[float, ...]
    frequencies: np.ndarray  # file order
    amplitudes: np.ndarray   # shape (rows, headings)
    phases: np.ndarray       # shape (rows, headings), degrees as read
    source: str = ""

    def select(self, dof: Dof, speed_kts: float, heading_deg: float) -> ResponseFunction:
        """
        Extract one heading column as a normalized ResponseFunction.

        Raises:
            ParseError: heading column not present, or no usable rows
        """
        column = _column_index(self.headings, heading_deg)
        if column is None:
            raise ParseError(
                f"heading {heading_deg:g} not present in table headings "
                f"{[f'{h:g}' for h in self.headings]}",
                self.source,
            )

        freqs = self.frequencies
        amps = self.amplitudes[:, column]
        phases = self.phases[:, column]

        usable = np.isfinite(freqs) & np.isfinite(amps) & np.isfinite(phases)
        freqs, amps, phases = freqs[usable], amps[usable], phases[usable]
        if len(freqs) == 0:
            raise ParseError(f"no usable rows for heading {heading_deg:g}", self.source)

        order = np.argsort(freqs, kind="stable")
        freqs, amps, phases = freqs[order], amps[order], phases[order]

        # Keep the first row of any repeated frequency
        keep = np.concatenate(([True], np.diff(freqs) > 0))
        if not np.all(keep):
            logger.warning(
                f"{self.source}: dropped {int(np.sum(~keep))} duplicate frequency row(s)"
            )
            freqs, amps, phases = freqs[keep], amps[keep], phases[keep]

        unwrapped = unwrap_phase(normalize_phase(phases))

        for arr in (freqs, amps, unwrapped):
            arr.setflags(write=False)

        return ResponseFunction(
            dof=dof,
            speed_kts=speed_kts,
            heading_deg=heading_deg,
            frequencies=freqs,
            amplitude=amps,
            phase_deg=unwrapped,
            source=self.source,
        )


def _column_index(headings: Sequence[float], heading_deg: float) -> Optional[int]:
    for i, h in enumerate(headings):
        if abs(h - heading_deg) < 1e-9:
            return i
    return None


def nearest_bucket(value: float, candidates: Sequence[float]) -> float:
    """
    Closest candidate by absolute difference; ties go to the lower candidate.
    """
    if not candidates:
        raise InputValidationError("No candidate buckets configured")
    return min(sorted(candidates), key=lambda c: abs(c - value))


def fold_heading(heading_deg: float) -> float:
    """
    Fold a heading into [0, 180] by reflection.

    RAO tables only cover one side of the hull; port and starboard
    responses are taken as symmetric, so 200 deg reads as 160 deg.
    """
    heading = heading_deg % 360.0
    if heading > 180.0:
        heading = 360.0 - heading
    return heading


def normalize_phase(phase_deg: np.ndarray) -> np.ndarray:
    """Map phases into (-180, 180]."""
    phase_deg = np.asarray(phase_deg, dtype=float)
    return 180.0 - np.mod(180.0 - phase_deg, 360.0)


def unwrap_phase(normalized_deg: np.ndarray) -> np.ndarray:
    """
    Remove 360 deg jumps along an ascending-frequency phase sequence.

    Whenever consecutive normalized phases step by more than 180 deg, a
    -/+360 deg offset is accumulated and applied to all following points.
    """
    normalized_deg = np.asarray(normalized_deg, dtype=float)
    if len(normalized_deg) < 2:
        return normalized_deg.copy()

    steps = np.diff(normalized_deg)
    corrections = np.where(steps > 180.0, -360.0, np.where(steps < -180.0, 360.0, 0.0))
    offsets = np.concatenate(([0.0], np.cumsum(corrections)))
    return normalized_deg + offsets


def interpolate(
    frequencies: Sequence[float],
    values: Sequence[float],
    targets: Sequence[float],
) -> np.ndarray:
    """
    Piecewise-linear interpolation with flat extrapolation.

    Queries below the first knot return the first value, above the last
    knot the last value; knots are reproduced exactly.

    Raises:
        InputValidationError: knots not strictly increasing or lengths differ
    """
    x = np.asarray(frequencies, dtype=float)
    y = np.asarray(values, dtype=float)
    if len(x) != len(y):
        raise InputValidationError(
            f"Knot arrays differ in length: {len(x)} frequencies, {len(y)} values"
        )
    if len(x) == 0:
        raise InputValidationError("Cannot interpolate from an empty curve")
    if len(x) > 1 and not np.all(np.diff(x) > 0):
        raise InputValidationError("Interpolation knots must be strictly increasing")

    return np.interp(np.asarray(targets, dtype=float), x, y, left=y[0], right=y[-1])


def parse_response_table(content: str, source: str = "") -> ResponseTable:
    """
    Parse a response table.

    Blank lines, '#' comments, short rows and non-numeric rows after the
    data header are skipped.

    Raises:
        ParseError: missing #HEADING or w(r/s) header, or no data rows
    """
    lines = content.splitlines()

    heading_idx = next(
        (i for i, line in enumerate(lines) if line.strip().startswith(HEADING_MARKER)),
        None,
    )
    if heading_idx is None:
        raise ParseError(f"missing {HEADING_MARKER} header", source)

    try:
        headings = tuple(
            float(tok) for tok in lines[heading_idx].strip()[len(HEADING_MARKER):].split()
        )
    except ValueError:
        raise ParseError(f"non-numeric heading in {lines[heading_idx].strip()!r}", source)
    if not headings:
        raise ParseError(f"{HEADING_MARKER} header lists no headings", source)

    data_idx = next(
        (i for i in range(heading_idx + 1, len(lines)) if DATA_MARKER in lines[i]),
        None,
    )
    if data_idx is None:
        raise ParseError(f"missing {DATA_MARKER} data header", source)

    n = len(headings)
    rows: List[List[float]] = []
    skipped = 0
    for line in lines[data_idx + 1:]:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        tokens = stripped.split()
        if len(tokens) < 1 + 2 * n:
            skipped += 1
            continue
        try:
            rows.append([float(tok) for tok in tokens[:1 + 2 * n]])
        except ValueError:
            skipped += 1

    if skipped:
        logger.debug(f"{source or 'response table'}: skipped {skipped} malformed row(s)")
    if not rows:
        raise ParseError("no data rows after header", source)

    data = np.array(rows, dtype=float)
    return ResponseTable(
        headings=headings,
        frequencies=data[:, 0],
        amplitudes=data[:, 1:1 + n],
        phases=data[:, 1 + n:1 + 2 * n],
        source=source,
    )


ResponseKey = Tuple[Dof, float, float]
TableReader = Callable[[Dof, float], Tuple[str, str]]


class ResponseLibrary:
    """
    Thread-safe, load-once cache of ResponseFunctions.

    Keyed by (dof, speed bucket, heading bucket). The first caller for a key
    parses the table; concurrent callers for the same key wait for that
    load and receive the same object. Failed loads are not cached.

    Usage:
        library = ResponseLibrary("data/rao")
        heave = library.load(Dof.HEAVE, speed_kts=11.2, heading_deg=200.0)
        # -> 12 kn, 150 deg bucket
    """

    def __init__(
        self,
        rao_dir: str = "data/rao",
        speeds_kts: Sequence[float] = DEFAULT_SPEEDS_KTS,
        headings_deg: Sequence[float] = DEFAULT_HEADINGS_DEG,
        reader: Optional[TableReader] = None,
    ):
        """
        Args:
            rao_dir: Directory holding <dof>_<speed>.rao files
            speeds_kts: Supported speed buckets
            headings_deg: Supported heading buckets within [0, 180]
            reader: Optional callable (dof, speed) -> (text, source name),
                replacing file access
        """
        self.rao_dir = Path(rao_dir)
        self.speeds_kts = tuple(sorted(float(s) for s in speeds_kts))
        self.headings_deg = tuple(sorted(float(h) for h in headings_deg))
        self._reader = reader or self._read_file

        self._cache: Dict[ResponseKey, ResponseFunction] = {}
        self._pending: Dict[ResponseKey, Future] = {}
        self._lock = threading.Lock()
        self._loads = 0

    def resolve(self, speed_kts: float, heading_deg: float) -> Tuple[float, float]:
        """Map a (speed, heading) observation to its (speed, heading) buckets."""
        return (
            nearest_bucket(speed_kts, self.speeds_kts),
            nearest_bucket(fold_heading(heading_deg), self.headings_deg),
        )

    def table_path(self, dof: Dof, speed_bucket: float) -> Path:
        return self.rao_dir / f"{dof.value}_{speed_bucket:g}.rao"

    def load(self, dof: Dof, speed_kts: float, heading_deg: float) -> ResponseFunction:
        """
        Get the response function for the nearest (speed, heading) bucket.

        Raises:
            ParseError: table missing or malformed for this combination
        """
        speed_bucket, heading_bucket = self.resolve(speed_kts, heading_deg)
        key = (dof, speed_bucket, heading_bucket)

        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            pending = self._pending.get(key)
            owner = pending is None
            if owner:
                pending = Future()
                self._pending[key] = pending

        if not owner:
            return pending.result()

        try:
            response = self._load_uncached(dof, speed_bucket, heading_bucket)
        except Exception as e:
            with self._lock:
                self._pending.pop(key, None)
            pending.set_exception(e)
            raise

        with self._lock:
            self._cache[key] = response
            self._pending.pop(key, None)
            self._loads += 1
        pending.set_result(response)
        metrics.increment("response_tables_loaded")
        return response

    def _load_uncached(
        self, dof: Dof, speed_bucket: float, heading_bucket: float
    ) -> ResponseFunction:
        content, source = self._reader(dof, speed_bucket)
        table = parse_response_table(content, source)
        response = table.select(dof, speed_bucket, heading_bucket)
        logger.info(
            f"Loaded {dof.value} RAO: {speed_bucket:g} kn, {heading_bucket:g} deg "
            f"({len(response)} frequencies) from {source}"
        )
        return response

    def _read_file(self, dof: Dof, speed_bucket: float) -> Tuple[str, str]:
        path = self.table_path(dof, speed_bucket)
        try:
            return path.read_text(encoding="utf-8"), str(path)
        except OSError as e:
            raise ParseError(f"cannot read response table: {e}", str(path)) from e

    def available_tables(self) -> List[Tuple[Dof, float, Path, bool]]:
        """List expected table files and whether each exists."""
        return [
            (dof, speed, self.table_path(dof, speed), self.table_path(dof, speed).exists())
            for dof in Dof
            for speed in self.speeds_kts
        ]

    @property
    def load_count(self) -> int:
        """Number of successful table loads (cache misses)."""
        with self._lock:
            return self._loads

    def clear(self):
        """Drop all cached responses."""
        with self._lock:
            self._cache.clear()
