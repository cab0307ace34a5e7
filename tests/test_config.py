# tests/test_config.py
"""Unit tests for Settings parsing and device-name resolution."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import pytest
from unittest.mock import patch

from alarm_backup.config import DEFAULT_PROCESSING_DELAY_SECONDS, Settings


class TestProcessingDelay:
    def test_default(self):
        assert Settings(_env_file=None).PROCESSING_DELAY_SECONDS == 120

    def test_override(self):
        assert Settings(_env_file=None, PROCESSING_DELAY_SECONDS="30").PROCESSING_DELAY_SECONDS == 30

    def test_unparseable_falls_back_to_default(self):
        s = Settings(_env_file=None, PROCESSING_DELAY_SECONDS="two minutes")
        assert s.PROCESSING_DELAY_SECONDS == DEFAULT_PROCESSING_DELAY_SECONDS

    def test_clamped_to_queue_limits(self):
        assert Settings(_env_file=None, PROCESSING_DELAY_SECONDS=5000).PROCESSING_DELAY_SECONDS == 900
        assert Settings(_env_file=None, PROCESSING_DELAY_SECONDS=-5).PROCESSING_DELAY_SECONDS == 0

    def test_from_environment(self):
        with patch.dict(os.environ, {"PROCESSING_DELAY_SECONDS": "abc"}):
            assert Settings(_env_file=None).PROCESSING_DELAY_SECONDS == 120


class TestDeviceNames:
    def test_metadata_wins(self):
        metadata = json.dumps({"devices": [{"deviceMac": "28704e113f64", "deviceName": "Front Door"}]})
        s = Settings(_env_file=None, DEVICE_METADATA=metadata, DEVICE_PREFIX="DEV_")
        with patch.dict(os.environ, {"DEV_28704E113F64": "Ignored"}):
            assert s.resolve_device_name("28704E113F64") == "Front Door"

    def test_prefixed_env_var(self):
        s = Settings(_env_file=None, DEVICE_PREFIX="DEV_")
        with patch.dict(os.environ, {"DEV_28704E113F64": "Driveway"}):
            assert s.resolve_device_name("28704E113F64") == "Driveway"

    def test_falls_back_to_device_id(self):
        s = Settings(_env_file=None, DEVICE_PREFIX="DEV_")
        assert s.resolve_device_name("AABBCCDDEEFF") == "AABBCCDDEEFF"

    def test_bad_metadata_is_ignored(self):
        s = Settings(_env_file=None, DEVICE_METADATA="{not json")
        assert s.resolve_device_name("AABBCCDDEEFF") == "AABBCCDDEEFF"

    @pytest.mark.parametrize("metadata", ['{"devices": null}', '{"devices": 5}', '{"devices": "AABB"}', "[]"])
    def test_malformed_device_list_is_ignored(self, metadata):
        s = Settings(_env_file=None, DEVICE_METADATA=metadata)
        assert s.resolve_device_name("AABBCCDDEEFF") == "AABBCCDDEEFF"
