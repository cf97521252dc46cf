"""AWS Secrets Manager access for GitLab, Slack and model credentials."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from eodcopilot.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class SecretResult:
    """Container for a decoded JSON secret."""

    name: str
    value: Dict[str, Any]


class SecretsManager:
    """Retrieves secrets from AWS Secrets Manager with graceful degradation."""

    def __init__(self, region_name: Optional[str] = None, client: Any | None = None) -> None:
        self.region_name = region_name
        self._client = client

    def _get_client(self):
        if self._client is None and self.region_name:
            try:
                self._client = boto3.client("secretsmanager", region_name=self.region_name)
            except (BotoCoreError, ClientError):
                logger.exception("Unable to create Secrets Manager client")
                self._client = None
        return self._client

    def get_secret(self, secret_id: Optional[str]) -> SecretResult | None:
        """Return the decoded secret, or ``None`` when it cannot be read."""

        if not secret_id:
            return None

        client = self._get_client()
        if client is None:
            logger.info("Secrets Manager client unavailable; skipping fetch for %s", secret_id)
            return None

        try:
            response = client.get_secret_value(SecretId=secret_id)
            secret_string = response.get("SecretString")
            if secret_string:
                payload = json.loads(secret_string)
            else:
                payload = json.loads(response["SecretBinary"].decode("utf-8"))
        except (BotoCoreError, ClientError, json.JSONDecodeError, KeyError):
            logger.exception("Failed to retrieve secret %s", secret_id)
            return None

        if not isinstance(payload, dict):
            logger.warning("Secret %s is not a JSON object; ignoring", secret_id)
            return None
        logger.debug("Loaded secret %s", secret_id)
        return SecretResult(name=secret_id, value=payload)


class CredentialStore:
    """Thin facade the config loader uses to read whole secret payloads."""

    def __init__(self, secrets_manager: SecretsManager | None = None) -> None:
        self.secrets_manager = secrets_manager or SecretsManager()

    def get_all_from_secret(self, secret_id: Optional[str]) -> Dict[str, Any]:
        secret = self.secrets_manager.get_secret(secret_id) if secret_id else None
        return secret.value if secret else {}
