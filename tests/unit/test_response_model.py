"""
Unit tests for RAO table parsing, bucket selection and the response cache.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from src.metrics import metrics
from src.spectral import (
    Dof,
    InputValidationError,
    ParseError,
    ResponseLibrary,
    fold_heading,
    interpolate,
    nearest_bucket,
    parse_response_table,
)
from src.spectral.rao import normalize_phase, unwrap_phase

SPEEDS = (0.0, 4.0, 8.0, 10.0, 12.0, 14.0, 16.0)
HEADINGS = (0.0, 30.0, 60.0, 90.0, 120.0, 150.0, 180.0)


def _linear_table(make_table, frequencies=(0.2, 0.4, 0.6, 0.8), headings=HEADINGS):
    return make_table(
        frequencies,
        lambda w, h: w + h / 1000.0,
        lambda w, h: -100.0 * w,
        headings=headings,
    )


class TestHeadingFolding:
    """Headings reflect into [0, 180]."""

    @pytest.mark.parametrize("heading,expected", [
        (0.0, 0.0),
        (90.0, 90.0),
        (180.0, 180.0),
        (200.0, 160.0),
        (350.0, 10.0),
        (360.0, 0.0),
        (-30.0, 30.0),
        (540.0, 180.0),
    ])
    def test_fold(self, heading, expected):
        assert fold_heading(heading) == pytest.approx(expected)


class TestNearestBucket:
    """Nearest-candidate selection with the lower-wins tie rule."""

    @pytest.mark.parametrize("speed,expected", [
        (0.0, 0.0),
        (11.2, 12.0),
        (12.9, 12.0),
        (13.1, 14.0),
        (25.0, 16.0),
    ])
    def test_speed(self, speed, expected):
        assert nearest_bucket(speed, SPEEDS) == expected

    @pytest.mark.parametrize("value,candidates,expected", [
        (2.0, SPEEDS, 0.0),
        (9.0, SPEEDS, 8.0),
        (15.0, HEADINGS, 0.0),
        (45.0, HEADINGS, 30.0),
        (165.0, HEADINGS, 150.0),
    ])
    def test_ties_go_to_lower(self, value, candidates, expected):
        assert nearest_bucket(value, candidates) == expected

    def test_unsorted_candidates(self):
        assert nearest_bucket(9.0, (10.0, 8.0, 4.0)) == 8.0

    def test_empty_candidates(self):
        with pytest.raises(InputValidationError):
            nearest_bucket(1.0, ())

    def test_resolve_folds_heading(self, library):
        assert library.resolve(11.2, 200.0) == (12.0, 150.0)

    def test_port_and_starboard_share_bucket(self, library):
        assert library.resolve(8.0, 10.0) == library.resolve(8.0, 350.0) == (8.0, 0.0)


class TestPhaseHandling:
    """Normalization into (-180, 180] and unwrapping."""

    @pytest.mark.parametrize("raw,expected", [
        (0.0, 0.0),
        (180.0, 180.0),
        (-180.0, 180.0),
        (190.0, -170.0),
        (-190.0, 170.0),
        (540.0, 180.0),
        (-725.0, -5.0),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_phase(np.array([raw]))[0] == pytest.approx(expected)

    def test_unwrap_removes_jumps(self):
        raw = -60.0 * np.arange(12)  # 0 .. -660 deg
        unwrapped = unwrap_phase(normalize_phase(raw))

        assert np.allclose(unwrapped, raw)
        assert np.all(np.abs(np.diff(unwrapped)) <= 180.0 + 1e-9)

    def test_unwrap_positive_drift(self):
        raw = 70.0 * np.arange(10)
        assert np.allclose(unwrap_phase(normalize_phase(raw)), raw)

    def test_unwrap_single_point(self):
        assert unwrap_phase(np.array([45.0])).tolist() == [45.0]


class TestParseResponseTable:
    """Parsing the #HEADING / w(r/s) text format."""

    def test_parse_and_select(self, make_table):
        table = parse_response_table(_linear_table(make_table), source="heave_8.rao")
        response = table.select(Dof.HEAVE, 8.0, 90.0)

        assert table.headings == HEADINGS
        assert response.frequencies.tolist() == [0.2, 0.4, 0.6, 0.8]
        assert response.amplitude == pytest.approx([0.29, 0.49, 0.69, 0.89])
        assert response.phase_deg == pytest.approx([-20.0, -40.0, -60.0, -80.0])
        assert response.dof is Dof.HEAVE
        assert response.heading_deg == 90.0

    def test_arrays_read_only(self, make_table):
        response = parse_response_table(_linear_table(make_table)).select(Dof.PITCH, 0.0, 0.0)
        for arr in (response.frequencies, response.amplitude, response.phase_deg):
            with pytest.raises(ValueError):
                arr[0] = 99.0

    def test_unwrapped_phase_is_continuous(self, make_table):
        text = make_table(
            [0.1 * k for k in range(1, 31)],
            lambda w, h: 1.0,
            lambda w, h: -150.0 * w + 170.0,
        )
        response = parse_response_table(text).select(Dof.HEAVE, 0.0, 0.0)

        assert np.all(np.abs(np.diff(response.phase_deg)) <= 180.0 + 1e-9)
        expected = [-150.0 * 0.1 * k + 170.0 for k in range(1, 31)]
        assert response.phase_deg == pytest.approx(expected, abs=1e-6)

    def test_rows_sorted_by_frequency(self, make_table):
        text = make_table((0.8, 0.2, 0.6, 0.4), lambda w, h: w, lambda w, h: -10.0 * w)
        response = parse_response_table(text).select(Dof.HEAVE, 0.0, 0.0)

        assert response.frequencies.tolist() == [0.2, 0.4, 0.6, 0.8]
        assert response.amplitude == pytest.approx([0.2, 0.4, 0.6, 0.8])

    def test_duplicate_frequency_keeps_first(self, make_table):
        text = make_table((0.2, 0.4, 0.6), lambda w, h: w, lambda w, h: 0.0)
        text += "0.400 " + " ".join(["9.0"] * 7) + " " + " ".join(["0.0"] * 7) + "\n"
        response = parse_response_table(text).select(Dof.HEAVE, 0.0, 0.0)

        assert response.frequencies.tolist() == [0.2, 0.4, 0.6]
        assert response.amplitude[1] == pytest.approx(0.4)

    def test_malformed_rows_skipped(self, make_table):
        text = _linear_table(make_table)
        text += "\n# trailing comment\n0.9 1.0 2.0\nabc " + " ".join(["1"] * 14) + "\n"
        response = parse_response_table(text).select(Dof.HEAVE, 0.0, 0.0)

        assert len(response) == 4

    def test_missing_heading_header(self):
        with pytest.raises(ParseError, match="#HEADING"):
            parse_response_table("w(r/s) a b\n0.1 1 0\n", source="x.rao")

    def test_missing_data_header(self):
        with pytest.raises(ParseError, match="w\\(r/s\\)"):
            parse_response_table("#HEADING 0\n0.1 1 0\n")

    def test_no_data_rows(self):
        with pytest.raises(ParseError, match="no data rows"):
            parse_response_table("#HEADING 0 90\nw(r/s) a0 a90 p0 p90\n\n# nothing\n")

    def test_non_numeric_heading(self):
        with pytest.raises(ParseError):
            parse_response_table("#HEADING 0 beam\nw(r/s)\n0.1 1 1 0 0\n")

    def test_missing_heading_column(self, make_table):
        table = parse_response_table(_linear_table(make_table, headings=(0.0, 90.0, 180.0)))
        with pytest.raises(ParseError, match="heading 30"):
            table.select(Dof.HEAVE, 0.0, 30.0)

    def test_source_in_message(self):
        with pytest.raises(ParseError) as exc_info:
            parse_response_table("", source="pitch_4.rao")
        assert "pitch_4.rao" in str(exc_info.value)
        assert exc_info.value.source == "pitch_4.rao"


class TestInterpolate:
    """Piecewise-linear interpolation with flat extrapolation."""

    def test_exact_at_knots(self):
        x = [0.1, 0.5, 1.0]
        y = [1.0, 3.0, 2.0]
        assert interpolate(x, y, x).tolist() == y

    def test_linear_between_knots(self):
        assert interpolate([0.0, 1.0], [0.0, 10.0], [0.25])[0] == pytest.approx(2.5)

    def test_flat_extrapolation(self):
        result = interpolate([0.2, 0.4], [5.0, 7.0], [0.0, 0.1, 1.0, 6.0])
        assert result.tolist() == [5.0, 5.0, 7.0, 7.0]

    def test_non_increasing_knots_rejected(self):
        with pytest.raises(InputValidationError):
            interpolate([0.1, 0.1, 0.3], [1.0, 2.0, 3.0], [0.2])

    def test_length_mismatch_rejected(self):
        with pytest.raises(InputValidationError):
            interpolate([0.1, 0.2], [1.0], [0.15])

    def test_empty_curve_rejected(self):
        with pytest.raises(InputValidationError):
            interpolate([], [], [0.15])


class TestResponseLibrary:
    """Load-once cache keyed by (dof, speed bucket, heading bucket)."""

    def test_load_from_directory(self, library):
        response = library.load(Dof.HEAVE, 11.2, 200.0)

        assert response.speed_kts == 12.0
        assert response.heading_deg == 150.0
        assert response.source.endswith("heave_12.rao")

    def test_same_bucket_returns_same_object(self, library):
        first = library.load(Dof.PITCH, 11.6, 140.0)
        second = library.load(Dof.PITCH, 12.4, 160.0)

        assert first is second
        assert library.load_count == 1
        assert metrics.get_counter("response_tables_loaded") == 1

    def test_distinct_keys_load_separately(self, library):
        library.load(Dof.HEAVE, 12.0, 150.0)
        library.load(Dof.PITCH, 12.0, 150.0)
        library.load(Dof.HEAVE, 12.0, 180.0)

        assert library.load_count == 3

    def test_missing_file_raises_parse_error(self, tmp_path):
        library = ResponseLibrary(str(tmp_path), SPEEDS, HEADINGS)
        with pytest.raises(ParseError, match="cannot read"):
            library.load(Dof.HEAVE, 8.0, 0.0)

    def test_failed_load_not_cached(self, tmp_path, make_table):
        library = ResponseLibrary(str(tmp_path), SPEEDS, HEADINGS)
        with pytest.raises(ParseError):
            library.load(Dof.HEAVE, 8.0, 0.0)

        (tmp_path / "heave_8.rao").write_text(_linear_table(make_table))
        response = library.load(Dof.HEAVE, 8.0, 0.0)

        assert len(response) == 4
        assert library.load_count == 1

    def test_concurrent_population_loads_once(self, make_table):
        calls = []
        text = _linear_table(make_table)

        def slow_reader(dof, speed):
            calls.append((dof, speed))
            time.sleep(0.05)
            return text, f"memory:{dof.value}_{speed:g}"

        library = ResponseLibrary("unused", SPEEDS, HEADINGS, reader=slow_reader)
        barrier = threading.Barrier(8)

        def load():
            barrier.wait()
            return library.load(Dof.HEAVE, 10.0, 90.0)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: load(), range(8)))

        assert len(calls) == 1
        assert all(r is results[0] for r in results)

    def test_concurrent_waiters_see_failure(self):
        started = threading.Event()
        release = threading.Event()

        def failing_reader(dof, speed):
            started.set()
            release.wait(timeout=2.0)
            raise ParseError("corrupt", "memory")

        library = ResponseLibrary("unused", SPEEDS, HEADINGS, reader=failing_reader)

        with ThreadPoolExecutor(max_workers=2) as pool:
            owner = pool.submit(library.load, Dof.PITCH, 4.0, 0.0)
            started.wait(timeout=2.0)
            waiter = pool.submit(library.load, Dof.PITCH, 4.0, 0.0)
            time.sleep(0.05)
            release.set()

            with pytest.raises(ParseError):
                owner.result(timeout=2.0)
            with pytest.raises(ParseError):
                waiter.result(timeout=2.0)

    def test_available_tables(self, library, rao_dir):
        tables = library.available_tables()

        assert len(tables) == 2 * len(SPEEDS)
        assert all(exists for *_, exists in tables)
        (rao_dir / "pitch_16.rao").unlink()
        missing = [path for dof, speed, path, exists in library.available_tables() if not exists]
        assert [p.name for p in missing] == ["pitch_16.rao"]

    def test_clear_forces_reload(self, library):
        library.load(Dof.HEAVE, 0.0, 0.0)
        library.clear()
        library.load(Dof.HEAVE, 0.0, 0.0)
        assert library.load_count == 2
