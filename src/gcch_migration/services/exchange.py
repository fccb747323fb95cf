# exchange.py - Exchange Online operations for mail-enabled security groups

import logging
import subprocess
from typing import Any, Dict, Optional

from ..config import TenantSettings
from ..errors import ConnectionFailure, ExchangeError

logger = logging.getLogger(__name__)


def ps_quote(value: str) -> str:
    """Quote a value as a single-quoted PowerShell string literal."""
    return "'" + value.replace("'", "''") + "'"


class ExchangeOnlineService:
    """
    Exchange Online automation through the ExchangeOnlineManagement module.

    Microsoft Graph cannot create mail-enabled security groups or change their
    membership, so those operations go through PowerShell with certificate
    app-only authentication. Each call runs in its own pwsh process.
    """

    def __init__(self, tenant: TenantSettings, powershell: str = "pwsh", timeout: int = 180):
        self.tenant = tenant
        self.powershell = powershell
        self.timeout = timeout

        missing = [name for name, value in (
            ('organization', tenant.organization),
            ('client_id', tenant.client_id),
            ('cert_thumbprint', tenant.cert_thumbprint),
        ) if not value]
        if missing:
            raise ConnectionFailure(
                f"Missing Exchange Online settings for {tenant.role} tenant: {', '.join(missing)}"
            )

    def _connect_block(self) -> str:
        return (
            "Import-Module ExchangeOnlineManagement -ErrorAction Stop\n"
            f"Connect-ExchangeOnline -AppId {ps_quote(self.tenant.client_id)} "
            f"-CertificateThumbprint {ps_quote(self.tenant.cert_thumbprint)} "
            f"-Organization {ps_quote(self.tenant.organization)} "
            f"-ExchangeEnvironmentName {self.tenant.endpoints.exchange_environment} "
            "-ShowBanner:$false -ErrorAction Stop\n"
        )

    def _run(self, body: str) -> str:
        script = f'''
$ErrorActionPreference = 'Stop'
try {{
{self._connect_block()}{body}
    Disconnect-ExchangeOnline -Confirm:$false -ErrorAction SilentlyContinue
    exit 0
}} catch {{
    Write-Output "ERROR: $($_.Exception.Message)"
    Disconnect-ExchangeOnline -Confirm:$false -ErrorAction SilentlyContinue
    exit 1
}}
'''
        try:
            result = subprocess.run(
                [self.powershell, "-NoProfile", "-NonInteractive", "-Command", script],
                capture_output=True, text=True, timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise ExchangeError(f"PowerShell executable not found: {self.powershell}") from e
        except subprocess.TimeoutExpired as e:
            raise ExchangeError(f"Exchange Online command timed out after {self.timeout}s") from e

        if result.returncode != 0:
            detail = (result.stdout.strip().splitlines() or [result.stderr.strip()])[-1]
            raise ExchangeError(f"Exchange Online command failed (exit code {result.returncode}): {detail}")
        if result.stderr.strip():
            logger.debug(f"PowerShell stderr: {result.stderr.strip()}")
        return result.stdout

    def test_connection(self) -> bool:
        """Open and close a session. Raises ConnectionFailure when that is not possible."""
        try:
            self._run("    Get-OrganizationConfig | Select-Object -ExpandProperty Name | Write-Output\n")
        except ExchangeError as e:
            raise ConnectionFailure(f"Exchange Online connection failed for {self.tenant.role} tenant: {e}") from e
        logger.info(f"Connected to Exchange Online ({self.tenant.endpoints.exchange_environment})")
        return True

    def create_mail_enabled_security_group(self, display_name: str,
                                           mail_nickname: Optional[str] = None,
                                           description: Optional[str] = None) -> Dict[str, Any]:
        """Create a mail-enabled security group and return its directory object id."""
        args = f"-Name {ps_quote(display_name)} -DisplayName {ps_quote(display_name)} -Type Security"
        if mail_nickname:
            args += f" -Alias {ps_quote(mail_nickname)}"
        body = f"    $group = New-DistributionGroup {args}\n"
        if description:
            body += f"    Set-Group -Identity $group.Identity -Notes {ps_quote(description)}\n"
        body += '    Write-Output "OBJECTID: $($group.ExternalDirectoryObjectId)"\n'

        output = self._run(body)
        object_id = None
        for line in output.splitlines():
            if line.startswith("OBJECTID:"):
                object_id = line.split(":", 1)[1].strip() or None
        logger.info(f"Created mail-enabled security group via Exchange Online: {display_name}")
        return {"id": object_id, "displayName": display_name, "mailNickname": mail_nickname, "mailEnabled": True}

    def add_distribution_group_member(self, group_id: str, member_id: str) -> None:
        self._run(
            f"    Add-DistributionGroupMember -Identity {ps_quote(group_id)} "
            f"-Member {ps_quote(member_id)} -BypassSecurityGroupManagerCheck\n"
        )
