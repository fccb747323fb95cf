# src/gcch_migration/config.py

import logging
import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from .errors import ConfigError
from .utils.credential_manager import CredentialManager
from .utils.yaml_loader import load_yaml

logger = logging.getLogger(__name__)

TENANT_ROLES = ("source", "destination")
_ENV_PREFIX = {"source": "SOURCE", "destination": "DEST"}


class CloudEndpoints(BaseModel):
    model_config = ConfigDict(frozen=True)

    graph_endpoint: str
    login_endpoint: str
    graph_scope: str
    exchange_environment: str = "O365Default"


class TenantSettings(BaseModel):
    """Everything needed to authenticate against one tenant."""
    model_config = ConfigDict(frozen=True)

    role: str
    cloud: str
    endpoints: CloudEndpoints
    tenant_id: str
    client_id: str
    client_secret: Optional[str] = None
    organization: Optional[str] = None
    cert_thumbprint: Optional[str] = None


class Config:
    """Configuration manager for the migration tooling."""

    def __init__(self, settings_path: Optional[str] = None,
                 credentials: Optional[CredentialManager] = None):
        """Initialize configuration from the settings YAML and environment."""
        self.settings_path = settings_path or 'settings.yaml'
        self.settings: Dict[str, Any] = load_yaml(self.settings_path)
        self.credentials = credentials or CredentialManager()
        self._secrets_cache: Dict[str, str] = {}

    # ========== Property Methods ==========

    @property
    def settle_seconds(self) -> float:
        return float(self.settings.get('import', {}).get('settle_seconds', 2))

    @property
    def log_dir(self) -> str:
        return self.settings.get('logging', {}).get('log_dir', 'logs')

    @property
    def log_level(self) -> str:
        return self.settings.get('logging', {}).get('log_level', 'INFO')

    @property
    def powershell(self) -> str:
        return self.settings.get('exchange', {}).get('powershell', 'pwsh')

    @property
    def exchange_timeout(self) -> int:
        return int(self.settings.get('exchange', {}).get('timeout_seconds', 180))

    # ========== Secrets ==========

    def get_secret(self, key: str, use_cache: bool = True) -> Optional[str]:
        """
        Get a secret value by key.
        Checks cache, environment variables, then the OS credential store.
        """
        if use_cache and key in self._secrets_cache:
            return self._secrets_cache[key]

        value = os.getenv(key) or self.credentials.get_credential(key)
        if value and use_cache:
            self._secrets_cache[key] = value
        return value

    # ========== Tenants ==========

    def cloud_endpoints(self, cloud: str) -> CloudEndpoints:
        clouds = self.settings.get('clouds', {})
        if cloud not in clouds:
            raise ConfigError(f"Unknown cloud '{cloud}' (configured: {', '.join(clouds) or 'none'})")
        return CloudEndpoints(**clouds[cloud])

    def tenant(self, role: str) -> TenantSettings:
        """
        Build the settings for the source or destination tenant.

        Environment variables SOURCE_TENANT_ID / SOURCE_CLIENT_ID (and the
        DEST_ equivalents) override the YAML values.
        """
        if role not in TENANT_ROLES:
            raise ConfigError(f"Unknown tenant role '{role}'")

        raw = self.settings.get('tenants', {}).get(role, {})
        prefix = _ENV_PREFIX[role]
        tenant_id = os.getenv(f"{prefix}_TENANT_ID") or raw.get('tenant_id')
        client_id = os.getenv(f"{prefix}_CLIENT_ID") or raw.get('client_id')
        organization = os.getenv(f"{prefix}_ORGANIZATION") or raw.get('organization') or None

        missing = [name for name, value in (('tenant_id', tenant_id), ('client_id', client_id)) if not value]
        if missing:
            raise ConfigError(f"Missing {', '.join(missing)} for {role} tenant")

        cloud = raw.get('cloud', 'commercial' if role == 'source' else 'gcc_high')
        return TenantSettings(
            role=role,
            cloud=cloud,
            endpoints=self.cloud_endpoints(cloud),
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=self.get_secret(raw.get('client_secret_key', f"{prefix}_CLIENT_SECRET")),
            organization=organization,
            cert_thumbprint=self.get_secret(raw.get('cert_thumbprint_key', f"{prefix}_CERT_THUMBPRINT")),
        )
