"""
Port (interface) for secret stores.
Infrastructure adapters (e.g. SecretsManagerAdapter) must implement this interface.
"""

from abc import ABC, abstractmethod


class ISecretStore(ABC):
    @abstractmethod
    def get_secret(self, secret_id: str) -> dict:
        """Fetch and deserialize a secret (API keys, store credentials) by id or ARN."""
        ...
