"""JSON blob storage backed by the operating system keyring."""

import json
import logging

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from errors import BackendError

logger = logging.getLogger(__name__)


class SecureStore:
    """Keyed JSON values kept in the OS keyring under one service name."""

    def __init__(self, service: str = "fitlog") -> None:
        self.service = service

    def get_json(self, key: str, default=None):
        """Return the decoded value, or ``default`` when absent or malformed."""
        try:
            raw = keyring.get_password(self.service, key)
        except KeyringError as e:
            logger.warning("secure store read %s failed: %s", key, e)
            return default
        if raw is None:
            logger.debug("secure store has no %s, using defaults", key)
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.debug("secure store value %s is not JSON, using defaults", key)
            return default

    def set_json(self, key: str, value) -> None:
        try:
            keyring.set_password(self.service, key, json.dumps(value))
        except KeyringError as e:
            logger.warning("secure store write %s failed: %s", key, e)
            raise BackendError(f"Could not save {key}", "secure_store.set") from e

    def delete(self, key: str) -> None:
        try:
            keyring.delete_password(self.service, key)
        except PasswordDeleteError:
            pass
