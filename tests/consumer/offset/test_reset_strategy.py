"""Tests for offset reset scenarios."""

from datetime import timedelta

import pytest

from streamreset.consumer.offset import TopicPartition
from streamreset.consumer.offset.reset_strategy import (
    ResetScenario,
    ScenarioKind,
    parse_datetime,
    parse_duration,
)
from streamreset.errors import (
    EmptyPlanError,
    InvalidDatetimeError,
    InvalidDurationError,
    InvalidOptionsError,
    ScenarioConflictError,
)

JAN_1_2024_UTC_MS = 1704067200000
ONE_HOUR_MS = 3600 * 1000


class TestScenarioKind:
    """Test ScenarioKind enum."""

    def test_kind_values(self):
        """Test kind enum values."""
        assert ScenarioKind.TO_EARLIEST == "to-earliest"
        assert ScenarioKind.TO_LATEST == "to-latest"
        assert ScenarioKind.FROM_FILE == "from-file"


class TestFromOptions:
    """Test ResetScenario.from_options."""

    def test_default_is_earliest(self):
        """Test no option selects to-earliest."""
        scenario = ResetScenario.from_options()

        assert scenario.kind == ScenarioKind.TO_EARLIEST
        assert scenario.value is None

    def test_to_offset(self):
        """Test absolute offset."""
        scenario = ResetScenario.from_options(to_offset=42)

        assert scenario == ResetScenario(ScenarioKind.TO_OFFSET, 42)

    def test_to_offset_zero(self):
        """Test offset zero counts as selected."""
        scenario = ResetScenario.from_options(to_offset=0)

        assert scenario.kind == ScenarioKind.TO_OFFSET

    def test_negative_offset_rejected(self):
        """Test negative absolute offset."""
        with pytest.raises(InvalidOptionsError):
            ResetScenario.from_options(to_offset=-1)

    def test_shift_by_negative(self):
        """Test negative shift is allowed."""
        scenario = ResetScenario.from_options(shift_by=-5)

        assert scenario == ResetScenario(ScenarioKind.SHIFT_BY, -5)

    def test_to_datetime_parsed(self):
        """Test datetime is parsed to epoch milliseconds."""
        scenario = ResetScenario.from_options(to_datetime="2024-01-01T00:00:00.000")

        assert scenario.value == JAN_1_2024_UTC_MS

    def test_by_duration_parsed(self):
        """Test duration is parsed to a timedelta."""
        scenario = ResetScenario.from_options(by_duration="PT15M")

        assert scenario.value == timedelta(minutes=15)

    def test_from_file_parsed(self, tmp_path):
        """Test plan file is read eagerly."""
        path = tmp_path / "plan.csv"
        path.write_text("/s:a,0,3\n", encoding="utf-8")

        scenario = ResetScenario.from_options(from_file=str(path))

        assert scenario.value == {TopicPartition("/s:a", 0): 3}

    def test_from_file_empty(self, tmp_path):
        """Test empty plan file is rejected before anything runs."""
        path = tmp_path / "plan.csv"
        path.write_text("", encoding="utf-8")

        with pytest.raises(EmptyPlanError):
            ResetScenario.from_options(from_file=str(path))

    def test_conflicting_scenarios(self):
        """Test two scenarios at once."""
        with pytest.raises(ScenarioConflictError) as exc_info:
            ResetScenario.from_options(to_earliest=True, to_latest=True)

        assert exc_info.value.scenarios == ["to-earliest", "to-latest"]

    def test_describe(self):
        """Test human readable description."""
        assert ResetScenario.from_options(shift_by=3).describe() == "shift-by 3"
        assert ResetScenario.from_options().describe() == "to-earliest"


class TestParseDatetime:
    """Test parse_datetime."""

    def test_missing_zone_is_utc(self):
        """Test implicit and explicit UTC agree."""
        assert parse_datetime("2024-01-01T00:00:00.000") == JAN_1_2024_UTC_MS
        assert parse_datetime("2024-01-01T00:00:00.000Z") == JAN_1_2024_UTC_MS

    @pytest.mark.parametrize("timestamp", [
        "2024-01-01T01:00:00.000+01:00",
        "2024-01-01T01:00:00.000+0100",
        "2024-01-01T01:00:00.000+01",
    ])
    def test_positive_offsets(self, timestamp):
        """Test offset notations describe the same instant."""
        assert parse_datetime(timestamp) == JAN_1_2024_UTC_MS

    def test_negative_offset(self):
        """Test zone behind UTC."""
        assert parse_datetime("2023-12-31T23:00:00.000-01:00") == JAN_1_2024_UTC_MS

    def test_milliseconds(self):
        """Test millisecond precision is kept."""
        assert parse_datetime("2024-01-01T00:00:00.123Z") == JAN_1_2024_UTC_MS + 123

    @pytest.mark.parametrize("timestamp", [
        "2024-01-01",
        "2024-01-01T",
        "2024-01-01T00:00:00Z",
        "not-a-dateTime",
        "2024-13-01T00:00:00.000",
    ])
    def test_invalid(self, timestamp):
        """Test malformed timestamps."""
        with pytest.raises(InvalidDatetimeError):
            parse_datetime(timestamp)


class TestParseDuration:
    """Test parse_duration."""

    @pytest.mark.parametrize("text,expected", [
        ("PT15M", timedelta(minutes=15)),
        ("P1DT2H", timedelta(days=1, hours=2)),
        ("PT0.5S", timedelta(milliseconds=500)),
        ("P2W", timedelta(weeks=2)),
        ("P1D", timedelta(days=1)),
        ("-PT1H", -timedelta(hours=1)),
    ])
    def test_valid(self, text, expected):
        """Test supported durations."""
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", [
        "P",
        "PT",
        "P1DT",
        "1D",
        "PT1X",
        "",
        "P999999999W",
        "PT99999999999999999999S",
    ])
    def test_invalid(self, text):
        """Test malformed durations."""
        with pytest.raises(InvalidDurationError):
            parse_duration(text)

    @pytest.mark.parametrize("text", ["P1Y", "P1M", "P1Y2M3D"])
    def test_years_and_months_rejected(self, text):
        """Test calendar units without fixed length."""
        with pytest.raises(InvalidDurationError, match="years or months"):
            parse_duration(text)
