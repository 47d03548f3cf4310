"""Vault backends for ``$secret.<provider>.<name>`` references."""

from missio.sdk.secrets.backends.base import SecretBackend, SecretBackendError

__all__ = ["SecretBackend", "SecretBackendError"]
