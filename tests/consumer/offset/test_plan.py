"""Tests for reset plan parsing."""

import pytest

from streamreset.consumer.offset import TopicPartition
from streamreset.consumer.offset.plan import parse_reset_plan, read_reset_plan
from streamreset.errors import EmptyPlanError, MalformedPlanError


class TestParseResetPlan:
    """Test parse_reset_plan."""

    def test_parse_records(self):
        """Test well formed records."""
        plan = parse_reset_plan("/s:a,0,10\n/s:a,1,20\n")

        assert plan == {
            TopicPartition("/s:a", 0): 10,
            TopicPartition("/s:a", 1): 20,
        }

    def test_bare_topic_names(self):
        """Test topics in a plan are taken as written."""
        plan = parse_reset_plan("t,0,100\nt,1,200")

        assert plan == {TopicPartition("t", 0): 100, TopicPartition("t", 1): 200}

    def test_blank_lines_and_whitespace_ignored(self):
        """Test surrounding whitespace and blank lines are tolerated."""
        plan = parse_reset_plan("\n  /s:a , 0 , 5  \r\n\n")

        assert plan == {TopicPartition("/s:a", 0): 5}

    def test_last_record_wins(self):
        """Test a later record replaces an earlier one."""
        plan = parse_reset_plan("/s:a,0,10\n/s:a,0,3")

        assert plan == {TopicPartition("/s:a", 0): 3}

    @pytest.mark.parametrize("text", ["", "   ", "\n\n"])
    def test_empty_plan(self, text):
        """Test empty plans are rejected."""
        with pytest.raises(EmptyPlanError):
            parse_reset_plan(text)

    def test_wrong_field_count(self):
        """Test a line with too few fields reports its line number."""
        with pytest.raises(MalformedPlanError) as exc_info:
            parse_reset_plan("/s:a,0,1\n/s:a,0\n")

        assert exc_info.value.line_number == 2
        assert "TOPIC,PARTITION,OFFSET" in str(exc_info.value)

    def test_too_many_fields(self):
        """Test a line with extra fields."""
        with pytest.raises(MalformedPlanError):
            parse_reset_plan("/s:a,0,1,2")

    @pytest.mark.parametrize("line", [
        "/s:a,x,1",
        "/s:a,0,ten",
        "/s:a,-1,1",
        "/s:a,0,-5",
        ",0,1",
    ])
    def test_invalid_fields(self, line):
        """Test non-integer, negative and empty fields."""
        with pytest.raises(MalformedPlanError):
            parse_reset_plan(line)


class TestReadResetPlan:
    """Test read_reset_plan."""

    def test_read_from_file(self, tmp_path):
        """Test reading a plan file."""
        path = tmp_path / "plan.csv"
        path.write_text("/s:a,0,7\n", encoding="utf-8")

        assert read_reset_plan(path) == {TopicPartition("/s:a", 0): 7}

    def test_missing_file(self, tmp_path):
        """Test a missing file surfaces as an OS error."""
        with pytest.raises(FileNotFoundError):
            read_reset_plan(tmp_path / "missing.csv")

    def test_not_utf8(self, tmp_path):
        """Test undecodable bytes are reported as a malformed plan."""
        path = tmp_path / "plan.csv"
        path.write_bytes(b"/s:in,0,\xff\xfe\n")

        with pytest.raises(MalformedPlanError, match="not valid UTF-8"):
            read_reset_plan(path)
