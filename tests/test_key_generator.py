# tests/test_key_generator.py
"""Unit tests for storage key derivation."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from alarm_backup.schemas.alarm import Trigger
from alarm_backup.services.key_generator import UNKNOWN_DATE, derive_keys, timestamp_from_key, utc_date


def make_trigger(event_id="evt_123456789", device="28704E113F64"):
    return Trigger(key="motion", device=device, event_id=event_id)


class TestDeriveKeys:
    def test_documented_example(self):
        keys = derive_keys(make_trigger(), 1691000000000)
        assert keys.base == "evt_123456789_28704E113F64_1691000000000"
        assert keys.date == "2023-08-02"
        assert keys.event_key == "2023-08-02/evt_123456789_28704E113F64_1691000000000.json"
        assert keys.video_key == "2023-08-02/evt_123456789_28704E113F64_1691000000000.mp4"
        assert keys.thumbnail_key == "2023-08-02/evt_123456789_28704E113F64_1691000000000.jpg"

    def test_is_deterministic(self):
        assert derive_keys(make_trigger(), 1691000000000) == derive_keys(make_trigger(), 1691000000000)

    def test_each_input_changes_the_base(self):
        base = derive_keys(make_trigger(), 1691000000000).base
        assert derive_keys(make_trigger(event_id="evt_other"), 1691000000000).base != base
        assert derive_keys(make_trigger(device="AABBCCDDEEFF"), 1691000000000).base != base
        assert derive_keys(make_trigger(), 1691000000001).base != base

    def test_date_is_utc(self):
        # 2023-08-02T23:30:00Z is already the 3rd in UTC+1 and later zones
        assert derive_keys(make_trigger(), 1691019000000).date == "2023-08-02"

    def test_zero_and_negative_timestamps(self):
        assert derive_keys(make_trigger(), 0).event_key == "1970-01-01/evt_123456789_28704E113F64_0.json"
        assert derive_keys(make_trigger(), -86400000).date == "1969-12-31"

    def test_missing_fields_do_not_raise(self):
        keys = derive_keys(Trigger(), 1691000000000)
        assert keys.base == "None_None_1691000000000"

    def test_out_of_range_timestamp(self):
        assert utc_date(10 ** 20) == UNKNOWN_DATE


class TestTimestampFromKey:
    def test_parses_trailing_timestamp(self):
        assert timestamp_from_key("2023-08-02/evt_1_AA_1691000000000.mp4") == 1691000000000

    def test_malformed_key(self):
        assert timestamp_from_key("2023-08-02/garbage.mp4") == 0
        assert timestamp_from_key("") == 0
