"""
Infrastructure adapter: AWS Secrets Manager → ISecretStore.

Used by the composition root when STOCK_SECRET_ARN is set: the JSON secret
(e.g. {"FMP_API_KEY": "...", "SUPABASE_KEY": "..."}) is layered over the process
environment before Settings is built. Secrets are never written to os.environ.
"""

import json
import os
from typing import Any, Mapping, Optional

import boto3

from src.domain.errors import ConfigurationError
from src.domain.ports.secret_store_port import ISecretStore


class SecretsManagerAdapter(ISecretStore):
    """Fetches and deserializes secrets from AWS Secrets Manager."""

    def __init__(self, region: str | None = None, client: Any = None) -> None:
        self._client = client or boto3.client(
            "secretsmanager",
            region_name=region or os.environ.get("AWS_DEFAULT_REGION", "us-east-1"),
        )

    def get_secret(self, secret_id: str) -> dict:
        """Fetch and deserialize a JSON secret by ARN or name."""
        response = self._client.get_secret_value(SecretId=secret_id)
        try:
            secret = json.loads(response["SecretString"])
        except (KeyError, ValueError) as exc:
            raise ConfigurationError(f"Secret {secret_id!r} is not a JSON object") from exc
        if not isinstance(secret, dict):
            raise ConfigurationError(f"Secret {secret_id!r} is not a JSON object")
        return secret

    def overlay(self, secret_id: str, environ: Optional[Mapping[str, str]] = None) -> dict:
        """Return a copy of *environ* with the secret's key-value pairs layered on top."""
        merged = dict(os.environ if environ is None else environ)
        for key, value in self.get_secret(secret_id).items():
            merged[key] = str(value)
        return merged
