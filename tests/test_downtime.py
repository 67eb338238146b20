"""Tests for downtime records and reason/remark edits."""

import pytest
from opsboard_sim.downtime import (
    MOCK_DOWNTIME_RECORDS,
    REASON_OPTIONS,
    REMARK_OPTIONS,
    DowntimeStore,
    remark_options,
    set_reason,
    set_remark,
)


class TestSetReason:
    """Tests for relabeling a record."""

    def test_resets_remark_to_first_of_reason(self):
        records = set_reason(MOCK_DOWNTIME_RECORDS, "2", "Mechanical")

        record = next(r for r in records if r.record_id == "2")
        assert record.reason == "Mechanical"
        assert record.remarks == "Conveyor Jam"

    def test_resets_even_when_reason_unchanged(self):
        records = set_reason(MOCK_DOWNTIME_RECORDS, "5", "Mechanical")

        record = next(r for r in records if r.record_id == "5")
        assert record.remarks == "Conveyor Jam"

    @pytest.mark.parametrize("reason", REASON_OPTIONS)
    def test_every_known_reason(self, reason):
        records = set_reason(MOCK_DOWNTIME_RECORDS, "3", reason)

        record = next(r for r in records if r.record_id == "3")
        assert record.remarks == REMARK_OPTIONS[reason][0]

    def test_unknown_reason_falls_back_to_other(self):
        records = set_reason(MOCK_DOWNTIME_RECORDS, "1", "Weather")

        record = next(r for r in records if r.record_id == "1")
        assert record.reason == "Weather"
        assert record.remarks == "Other"

    def test_non_string_reason_falls_back_to_other(self):
        records = set_reason(MOCK_DOWNTIME_RECORDS, "1", ["Mechanical"])

        record = next(r for r in records if r.record_id == "1")
        assert record.remarks == "Other"

    def test_unknown_id_is_noop(self):
        records = set_reason(MOCK_DOWNTIME_RECORDS, "999", "Mechanical")

        assert records == list(MOCK_DOWNTIME_RECORDS)

    def test_does_not_touch_input(self):
        before = list(MOCK_DOWNTIME_RECORDS)

        set_reason(MOCK_DOWNTIME_RECORDS, "3", "Electrical")

        assert list(MOCK_DOWNTIME_RECORDS) == before
        assert MOCK_DOWNTIME_RECORDS[2].reason == "Not Chosen"

    def test_order_preserved(self):
        records = set_reason(MOCK_DOWNTIME_RECORDS, "6", "Material")

        assert [r.record_id for r in records] == [str(i) for i in range(1, 11)]


class TestSetRemark:
    """Tests for changing a record's remark."""

    def test_replaces_remark(self):
        records = set_remark(MOCK_DOWNTIME_RECORDS, "1", "Motor Failure")

        record = next(r for r in records if r.record_id == "1")
        assert record.remarks == "Motor Failure"
        assert record.reason == "Mechanical"

    def test_no_validation_against_reason(self):
        records = set_remark(MOCK_DOWNTIME_RECORDS, "1", "Hopper Empty")

        record = next(r for r in records if r.record_id == "1")
        assert record.remarks == "Hopper Empty"

    def test_unknown_id_is_noop(self):
        assert set_remark(MOCK_DOWNTIME_RECORDS, "nope", "Cleaning") == list(MOCK_DOWNTIME_RECORDS)


class TestRemarkOptions:
    """Tests for the remark lists."""

    def test_null_reason_uses_default_list(self):
        assert remark_options(None) == ["Not Chosen", "Pending Investigation"]
        assert remark_options("") == ["Not Chosen", "Pending Investigation"]

    def test_unknown_reason(self):
        assert remark_options("Weather") == ["Other"]

    def test_unhashable_reason(self):
        assert remark_options(["Mechanical"]) == ["Other"]
        assert remark_options({"reason": "Material"}) == ["Other"]


class TestDowntimeStore:
    """Tests for the in-memory store."""

    @pytest.fixture
    def store(self):
        return DowntimeStore()

    def test_seeded_with_mock_records(self, store):
        assert len(store.records) == 10
        assert store.get("7").remarks == "Out of Raw Material"

    def test_get_unknown(self, store):
        assert store.get("404") is None

    def test_set_reason_replaces_records(self, store):
        before = store.records

        after = store.set_reason("3", "Electrical")

        assert after is store.records
        assert before is not after
        assert store.get("3").remarks == "Sensor Misalignment"
        assert before[2].reason == "Not Chosen"

    def test_set_remark(self, store):
        store.set_remark("3", "Pending Investigation")

        assert store.get("3").remarks == "Pending Investigation"

    def test_unknown_id_never_raises(self, store):
        store.set_reason("x", "Mechanical")
        store.set_remark("x", "Cleaning")

        assert list(store.records) == list(MOCK_DOWNTIME_RECORDS)

    def test_record_to_dict(self, store):
        payload = store.get("1").to_dict()

        assert payload == {
            "id": "1",
            "time": "05/12/25 11:45:00",
            "reason": "Mechanical",
            "remarks": "Conveyor Jam",
            "run_time": "1:05:44",
            "is_confirmed": True,
        }
