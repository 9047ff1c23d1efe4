"""Tests for AtomInstance state and mutations."""

import math
from datetime import datetime

import pytest

from application.models import AtomInputType, CaptureState, MediaCapture, MediaCaptureSettings, MediaCaptureType, parse_numeric
from tests.fixtures import binary_atom, counter_atom, media_atom, value_atom

NOW = datetime(2024, 1, 1, 7, 30)


class TestBinaryAtom:
    @pytest.mark.unit
    def test_toggle_completes_and_records_time(self):
        atom = binary_atom()
        assert atom.toggle(NOW) is True
        assert atom.is_completed is True
        assert atom.completed_at == NOW

    @pytest.mark.unit
    def test_toggle_twice_restores(self):
        """Toggling twice returns to the original state."""
        atom = binary_atom()
        atom.toggle(NOW)
        atom.toggle(NOW)
        assert atom.checked is False
        assert atom.is_completed is False
        assert atom.completed_at is None

    @pytest.mark.unit
    def test_display(self):
        atom = binary_atom()
        assert atom.progress_display_string == "Not Done"
        atom.toggle()
        assert atom.progress_display_string == "Done"
        assert atom.progress == 1.0

    @pytest.mark.unit
    def test_wrong_type_operations_are_noops(self):
        atom = binary_atom()
        assert atom.increment() is False
        assert atom.decrement() is False
        assert atom.set_value("5") is False
        assert atom.begin_capture(MediaCaptureSettings.default_photo()) is False
        assert atom.current_value is None
        assert atom.capture_state is CaptureState.pending


class TestCounterAtom:
    @pytest.mark.unit
    def test_increment_to_target_completes(self):
        atom = counter_atom(current=4, target=5)
        assert atom.increment(NOW) is True
        assert atom.current_value == 5
        assert atom.is_completed is True
        assert atom.completed_at == NOW

    @pytest.mark.unit
    def test_may_exceed_target(self):
        atom = counter_atom(current=5, target=5)
        atom.increment()
        assert atom.current_value == 6
        assert atom.is_completed is True
        assert atom.progress == 1.0

    @pytest.mark.unit
    def test_decrement_below_target_reopens(self):
        atom = counter_atom(current=5, target=5)
        assert atom.decrement() is True
        assert atom.is_completed is False
        assert atom.completed_at is None

    @pytest.mark.unit
    def test_decrement_at_zero_is_noop(self):
        atom = counter_atom(current=0)
        assert atom.decrement() is False
        assert atom.current_value == 0

    @pytest.mark.unit
    def test_toggle_is_noop(self):
        atom = counter_atom()
        assert atom.toggle() is False
        assert atom.checked is False

    @pytest.mark.unit
    def test_progress_and_display(self):
        atom = counter_atom(current=2, target=5)
        assert atom.progress == pytest.approx(0.4)
        assert atom.progress_display_string == "2/5"

    @pytest.mark.unit
    def test_no_target_completes_on_positive_value(self):
        atom = counter_atom(current=0, target=None)
        assert atom.is_completed is False
        atom.increment()
        assert atom.is_completed is True


class TestMarkDone:
    @pytest.mark.unit
    def test_binary(self):
        atom = binary_atom()
        assert atom.mark_done(NOW) is True
        assert atom.checked is True
        assert atom.completed_at == NOW
        assert atom.mark_done(NOW) is False

    @pytest.mark.unit
    def test_counter_raised_to_target(self):
        atom = counter_atom(current=2, target=5)
        assert atom.mark_done(NOW) is True
        assert atom.current_value == 5

    @pytest.mark.unit
    def test_counter_without_target(self):
        atom = counter_atom(current=0, target=None)
        assert atom.mark_done(NOW) is True
        assert atom.current_value == 1
        assert atom.is_completed is True

    @pytest.mark.unit
    def test_value_and_media_need_input(self):
        assert value_atom(target=100).mark_done(NOW) is False
        assert media_atom().mark_done(NOW) is False

    @pytest.mark.unit
    def test_mark_not_done_resets(self):
        checked = binary_atom(checked=True)
        counted = counter_atom(current=4, target=3)
        assert checked.mark_not_done() is True
        assert counted.mark_not_done() is True
        assert checked.checked is False
        assert counted.current_value == 0
        assert counted.completed_at is None

    @pytest.mark.unit
    def test_mark_not_done_keeps_values(self):
        atom = value_atom(current=120, target=100)
        assert atom.mark_not_done() is False
        assert atom.current_value == 120


class TestValueAtom:
    @pytest.mark.unit
    def test_numeric_string_accepted(self):
        atom = value_atom(target=90)
        assert atom.set_value("91.5", NOW) is True
        assert atom.current_value == 91.5
        assert atom.is_completed is True
        assert atom.progress_display_string == "91.5 kg"

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["abc", "", None, True, float("nan"), "inf", [1]])
    def test_unparsable_input_is_noop(self, raw):
        atom = value_atom(current=80.0, target=90)
        assert atom.set_value(raw) is False
        assert atom.current_value == 80.0

    @pytest.mark.unit
    def test_same_value_is_noop(self):
        atom = value_atom(current=80.0)
        assert atom.set_value(80) is False

    @pytest.mark.unit
    def test_below_target_not_completed(self):
        atom = value_atom(target=100)
        atom.set_value(95)
        assert atom.is_completed is False
        assert atom.progress == pytest.approx(0.95)

    @pytest.mark.unit
    def test_display_without_value_or_unit(self):
        assert value_atom().progress_display_string == "—"
        atom = value_atom(current=100.0, unit=None)
        assert atom.progress_display_string == "100"


class TestMediaAtom:
    """pending → capturing → captured | failed → pending"""

    @pytest.mark.unit
    def test_happy_path(self):
        atom = media_atom(AtomInputType.photo)
        settings = MediaCaptureSettings.default_photo()

        assert atom.begin_capture(settings) is True
        assert atom.capture_state is CaptureState.capturing
        assert atom.capture_settings == settings
        assert atom.is_completed is False

        artifact = MediaCapture(capture_type=MediaCaptureType.photo, media_file_url="file:///p.jpg")
        assert atom.complete_capture(artifact, NOW) is True
        assert atom.capture_state is CaptureState.captured
        assert atom.media_capture == artifact
        assert atom.is_completed is True
        assert atom.completed_at == NOW
        assert atom.progress_display_string == "Captured"

    @pytest.mark.unit
    def test_captured_is_terminal(self):
        atom = media_atom(AtomInputType.audio)
        atom.begin_capture(MediaCaptureSettings.default_audio())
        atom.complete_capture(MediaCapture(capture_type=MediaCaptureType.audio))

        assert atom.begin_capture(MediaCaptureSettings.default_audio()) is False
        assert atom.fail_capture() is False
        assert atom.retry_capture() is False
        assert atom.capture_state is CaptureState.captured

    @pytest.mark.unit
    def test_mismatched_artifact_rejected(self):
        atom = media_atom(AtomInputType.video)
        atom.begin_capture(MediaCaptureSettings.default_video())
        assert atom.complete_capture(MediaCapture(capture_type=MediaCaptureType.photo)) is False
        assert atom.capture_state is CaptureState.capturing
        assert atom.media_capture is None

    @pytest.mark.unit
    def test_complete_requires_capturing(self):
        atom = media_atom()
        assert atom.complete_capture(MediaCapture(capture_type=MediaCaptureType.photo)) is False

    @pytest.mark.unit
    def test_failure_and_unlimited_retry(self):
        atom = media_atom()
        for _ in range(3):
            assert atom.begin_capture(MediaCaptureSettings.default_photo()) is True
            assert atom.fail_capture() is True
            assert atom.capture_state is CaptureState.failed
            assert atom.capture_settings is None
            assert atom.progress_display_string == "Failed"
            assert atom.retry_capture() is True
            assert atom.capture_state is CaptureState.pending

    @pytest.mark.unit
    def test_retry_requires_failed(self):
        atom = media_atom()
        assert atom.retry_capture() is False


class TestParseNumeric:
    @pytest.mark.unit
    def test_parses(self):
        assert parse_numeric("  12.5 ") == 12.5
        assert parse_numeric(3) == 3.0

    @pytest.mark.unit
    def test_rejects(self):
        assert parse_numeric("1e999") is None
        assert parse_numeric(False) is None
        assert parse_numeric(object()) is None
        assert parse_numeric(-math.inf) is None


class TestSerialization:
    @pytest.mark.unit
    def test_derived_state_is_exported(self):
        atom = counter_atom(current=5, target=5)
        data = atom.model_dump()
        assert data["is_completed"] is True
        assert data["progress"] == 1.0
