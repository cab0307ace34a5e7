# tests/test_credentials_service.py
"""Unit tests for the credentials provider (fetch once, validate, cache)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import pytest
from unittest.mock import MagicMock
from botocore.exceptions import ClientError

from alarm_backup.config import Settings
from alarm_backup.exceptions import ConfigurationError, CredentialsError
from alarm_backup.services.credentials_service import CredentialsProvider

SECRET = {"hostname": "unifi.local", "username": "backup", "password": "s3cret", "apikey": "key-1"}


def make_provider(secret=SECRET, arn="arn:aws:secretsmanager:us-east-1:1:secret:unifi"):
    client = MagicMock()
    client.get_secret_value.return_value = {
        "SecretString": secret if isinstance(secret, str) else json.dumps(secret)
    }
    settings = Settings(_env_file=None, UNIFI_CREDENTIALS_SECRET_ARN=arn)
    return CredentialsProvider(settings, client), client


class TestCredentialsProvider:
    def test_parses_secret(self):
        provider, _ = make_provider()
        creds = provider.get_credentials()
        assert creds.hostname == "unifi.local"
        assert creds.apikey == "key-1"
        assert creds.base_url == "https://unifi.local"

    def test_secret_store_contacted_once(self):
        provider, client = make_provider()
        first = provider.get_credentials()
        second = provider.get_credentials()
        assert first is second
        client.get_secret_value.assert_called_once()

    def test_invalidate_forces_refetch(self):
        provider, client = make_provider()
        provider.get_credentials()
        provider.invalidate()
        provider.get_credentials()
        assert client.get_secret_value.call_count == 2

    def test_unparseable_secret(self):
        provider, _ = make_provider(secret="not json")
        with pytest.raises(CredentialsError):
            provider.get_credentials()

    @pytest.mark.parametrize("field", ["hostname", "username", "password"])
    def test_blank_required_field(self, field):
        provider, _ = make_provider(secret={**SECRET, field: "  "})
        with pytest.raises(CredentialsError) as exc:
            provider.get_credentials()
        assert exc.value.message == f"{field.capitalize()} is required in Unifi credentials"

    def test_credentials_error_is_a_configuration_error(self):
        provider, _ = make_provider(secret={"hostname": "unifi.local"})
        with pytest.raises(ConfigurationError):
            provider.get_credentials()

    def test_failed_validation_is_not_cached(self):
        provider, client = make_provider(secret="[]")
        for _ in range(2):
            with pytest.raises(CredentialsError):
                provider.get_credentials()
        assert client.get_secret_value.call_count == 2

    def test_missing_secret_reference(self):
        provider, client = make_provider(arn=None)
        with pytest.raises(ConfigurationError):
            provider.get_credentials()
        client.get_secret_value.assert_not_called()

    def test_secret_store_errors_propagate_unchanged(self):
        provider, client = make_provider()
        error = ClientError({"Error": {"Code": "ResourceNotFoundException", "Message": "gone"}}, "GetSecretValue")
        client.get_secret_value.side_effect = error
        with pytest.raises(ClientError) as exc:
            provider.get_credentials()
        assert exc.value is error
