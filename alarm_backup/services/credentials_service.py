# alarm_backup/services/credentials_service.py
"""
Video-source credentials: fetched once from AWS Secrets Manager, validated,
and cached for the life of the process (or until invalidate() is called).

Secret payload: {"hostname": ..., "username": ..., "password": ..., "apikey": ...}
"""

from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from alarm_backup.exceptions import ConfigurationError, CredentialsError
from alarm_backup.schemas.alarm import Credentials
from alarm_backup.utils.json_parser import safe_parse_json
from alarm_backup.utils.logger import get_logger

logger = get_logger(__name__)


class CredentialsCache:
    """Single-slot cache owned by one CredentialsProvider."""

    def __init__(self):
        self._value: Optional[Credentials] = None

    def get(self) -> Optional[Credentials]:
        return self._value

    def set(self, credentials: Credentials):
        self._value = credentials

    def clear(self):
        self._value = None


class CredentialsProvider:
    def __init__(self, settings, secrets_client, cache: Optional[CredentialsCache] = None):
        self.settings = settings
        self.secrets_client = secrets_client
        self.cache = cache or CredentialsCache()

    def get_credentials(self) -> Credentials:
        cached = self.cache.get()
        if cached is not None:
            return cached

        secret_id = self.settings.UNIFI_CREDENTIALS_SECRET_ARN
        if not secret_id:
            raise ConfigurationError("UNIFI_CREDENTIALS_SECRET_ARN is not configured")

        # Secrets Manager errors (ResourceNotFound, AccessDenied, ...) propagate unchanged
        response = self.secrets_client.get_secret_value(SecretId=secret_id)
        credentials = self._parse(response.get("SecretString"))

        self.cache.set(credentials)
        logger.info(f"[CREDENTIALS] Loaded video-source credentials for {credentials.hostname}")
        return credentials

    def invalidate(self):
        self.cache.clear()
        logger.debug("[CREDENTIALS] Cache cleared")

    @staticmethod
    def _parse(secret_string: Optional[str]) -> Credentials:
        payload = safe_parse_json(secret_string)
        if not isinstance(payload, dict):
            raise CredentialsError("Failed to deserialize Unifi credentials from secret")

        try:
            credentials = Credentials.model_validate(payload)
        except PydanticValidationError as e:
            raise CredentialsError(f"Failed to deserialize Unifi credentials from secret: {e}") from e

        missing = credentials.missing_fields()
        if missing:
            raise CredentialsError(f"{missing[0].capitalize()} is required in Unifi credentials")
        return credentials
