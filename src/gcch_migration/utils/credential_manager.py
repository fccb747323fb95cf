"""OS credential store access for tenant app-registration secrets."""

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)


class CredentialManager:
    """Keyring-backed lookup of tenant secrets (client secrets, certificate thumbprints)."""

    def __init__(self, service_name: str = "GCCH Migration"):
        self.service_name = service_name

    def get_credential(self, key: str) -> Optional[str]:
        """
        Get a credential stored under this manager's service name.

        Args:
            key: Credential name, e.g. "DEST_CLIENT_SECRET"

        Returns:
            The credential value if found, None otherwise
        """
        try:
            value = keyring.get_password(self.service_name, key)
        except KeyringError as e:
            logger.warning(f"Credential store unavailable while reading {key}: {e}")
            return None

        if value:
            logger.debug(f"Found credential {key} in credential store")
        else:
            logger.debug(f"Credential {key} not found in credential store")
        return value

    def set_credential(self, key: str, value: str) -> None:
        keyring.set_password(self.service_name, key, value)
        logger.info(f"Stored credential {key} in credential store")
