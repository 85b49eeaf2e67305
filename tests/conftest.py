"""
Shared pytest fixtures for SEADOSE tests.

Environment is set before any api.* import so the API settings singleton
is built with the test values. Response tables are written to tmp_path;
the repository's data/rao tables are never touched.
"""

import math
import os
from pathlib import Path
from typing import Callable, Iterable, Sequence

import pytest
from fastapi.testclient import TestClient

# ---------------------------------------------------------------------------
# Section 1: Environment setup (before ANY api.* imports)
# ---------------------------------------------------------------------------
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("RUNNER_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from src.config import Settings  # noqa: E402
from src.metrics import metrics  # noqa: E402
from src.spectral import (  # noqa: E402
    MotionSicknessPipeline,
    ResponseLibrary,
    SpectrumSynthesizer,
)

HEADINGS = (0.0, 30.0, 60.0, 90.0, 120.0, 150.0, 180.0)
SPEEDS = (0.0, 4.0, 8.0, 10.0, 12.0, 14.0, 16.0)
FREQUENCIES = tuple(round(0.1 * k, 2) for k in range(1, 21))

# Reference sea state: Hs/Tp pair with a known calibrated peak frequency
REFERENCE_HS = 4.58887597013465
REFERENCE_TP = 14.236200317715


# ---------------------------------------------------------------------------
# Section 2: Response table builders
# ---------------------------------------------------------------------------


def build_table(
    frequencies: Sequence[float],
    amplitude: Callable[[float, float], float],
    phase: Callable[[float, float], float],
    headings: Sequence[float] = HEADINGS,
    comment: str = "test table",
) -> str:
    """
    Render a response table in the #HEADING / w(r/s) text format.

    amplitude(w, heading) and phase(w, heading) supply the cell values.
    """
    lines = [
        f"# {comment}",
        "#HEADING " + " ".join(f"{h:g}" for h in headings),
        "w(r/s) " + " ".join(f"amp{h:g}" for h in headings) + " "
        + " ".join(f"ph{h:g}" for h in headings),
    ]
    for w in frequencies:
        amps = " ".join(f"{amplitude(w, h):.6f}" for h in headings)
        phases = " ".join(f"{phase(w, h):.3f}" for h in headings)
        lines.append(f"{w:.3f} {amps} {phases}")
    return "\n".join(lines) + "\n"


def heave_amplitude(w: float, heading: float) -> float:
    return 1.0 / (1.0 + (w / 0.8) ** 4) * (1.0 + 0.1 * heading / 180.0)


def heave_phase(w: float, heading: float) -> float:
    return -120.0 * w - heading / 18.0


def pitch_amplitude(w: float, heading: float) -> float:
    return (w * w / 9.81) * (0.3 + 0.7 * abs(math.cos(math.radians(heading)))) / (1.0 + (w / 0.9) ** 4)


def pitch_phase(w: float, heading: float) -> float:
    return -90.0 - 150.0 * w


def write_tables(
    directory: Path,
    speeds: Iterable[float] = SPEEDS,
    frequencies: Sequence[float] = FREQUENCIES,
) -> Path:
    """Write heave and pitch tables for each speed into directory."""
    directory.mkdir(parents=True, exist_ok=True)
    for speed in speeds:
        factor = 1.0 + 0.02 * speed
        (directory / f"heave_{speed:g}.rao").write_text(
            build_table(
                frequencies,
                lambda w, h: factor * heave_amplitude(w, h),
                heave_phase,
                comment=f"heave {speed:g} kn",
            )
        )
        (directory / f"pitch_{speed:g}.rao").write_text(
            build_table(
                frequencies,
                lambda w, h: factor * pitch_amplitude(w, h),
                pitch_phase,
                comment=f"pitch {speed:g} kn",
            )
        )
    return directory


# ---------------------------------------------------------------------------
# Section 3: Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_metrics():
    """Isolate counters between tests."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def rao_dir(tmp_path) -> Path:
    """Directory holding a complete set of heave/pitch tables."""
    return write_tables(tmp_path / "rao")


@pytest.fixture
def library(rao_dir) -> ResponseLibrary:
    return ResponseLibrary(rao_dir=str(rao_dir), speeds_kts=SPEEDS, headings_deg=HEADINGS)


@pytest.fixture
def synthesizer() -> SpectrumSynthesizer:
    return SpectrumSynthesizer()


@pytest.fixture
def pipeline(synthesizer, library) -> MotionSicknessPipeline:
    return MotionSicknessPipeline(synthesizer=synthesizer, library=library)


@pytest.fixture
def test_settings(rao_dir) -> Settings:
    """Pipeline settings pointing at the temporary tables."""
    return Settings(rao_dir=str(rao_dir))


@pytest.fixture
def client(test_settings):
    """
    FastAPI TestClient backed by the temporary tables.

    The lifespan is not entered, so the coalescing runner is not started
    and /api/feed drains synchronously.
    """
    from api.state import ApplicationState, get_app_state
    from api.main import app

    ApplicationState.reset()
    get_app_state().pipeline.rebuild(test_settings)

    yield TestClient(app)

    ApplicationState.reset()


# ---------------------------------------------------------------------------
# Section 4: Builder fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def reference_sea_state():
    """(Hs, Tp) whose calibrated spectrum peaks at 0.44135269011079 rad/s."""
    return REFERENCE_HS, REFERENCE_TP


@pytest.fixture
def make_table():
    """The build_table helper."""
    return build_table


@pytest.fixture
def make_rao_dir(tmp_path):
    """Write a table set into a fresh sub-directory of tmp_path."""
    def _make(name: str = "custom", **kwargs) -> Path:
        return write_tables(tmp_path / name, **kwargs)
    return _make
