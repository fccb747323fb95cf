"""
Microsoft Graph directory client.

Talks to either the commercial or the GCC High Graph endpoint depending on
the tenant settings it is built from. Only the handful of group and user
operations the migration needs are implemented.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Any, Dict, Iterator, List, Optional, Set

import httpx
import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import TenantSettings
from ..errors import ConnectionFailure, GraphError
from .base import DirectoryService

log = logging.getLogger(__name__)

LOOKUP_FIELDS = {"displayName", "mailNickname", "userPrincipalName"}
OBJECT_SELECT = "id,displayName,userPrincipalName,mailNickname,mailEnabled"
GROUP_SELECT = (
    "id,displayName,description,mailNickname,securityEnabled,mailEnabled,groupTypes,"
    "createdDateTime,onPremisesSyncEnabled,onPremisesSecurityIdentifier,visibility"
)
PAGE_SIZE = 999
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class GraphThrottled(GraphError):
    """A 429/5xx response that is worth another attempt."""
    pass


def escape_odata(value: str) -> str:
    return value.replace("'", "''")


def fallback_mail_nickname(display_name: str) -> str:
    """Graph requires a mailNickname on every group; derive one when the source had none."""
    nickname = re.sub(r"[^A-Za-z0-9._-]", "", display_name)[:64]
    return nickname or f"group-{uuid.uuid4().hex[:8]}"


class GraphService(DirectoryService):
    """
    Minimal Microsoft Graph client used by the export and import workflows.

    Requires a TenantSettings with tenant_id, client_id and client_secret for
    an app registration granted Group.ReadWrite.All / User.Read.All.
    """

    def __init__(self, tenant: TenantSettings, timeout: float = 30.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.tenant = tenant
        self.graph_endpoint = tenant.endpoints.graph_endpoint.rstrip("/")
        self.access_token: Optional[str] = None
        self.token_expires_at = 0.0
        self.timeout = timeout
        self.client = httpx.Client(
            base_url=self.graph_endpoint,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "GraphService":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- Auth ----------------------------------------------------------------

    def _get_access_token(self) -> str:
        """Get an app-only access token for this tenant's Graph endpoint, with caching."""
        if self.access_token and time.time() < self.token_expires_at:
            return self.access_token

        if not self.tenant.client_secret:
            raise ConnectionFailure(f"No client secret available for {self.tenant.role} tenant")

        token_url = f"{self.tenant.endpoints.login_endpoint.rstrip('/')}/{self.tenant.tenant_id}/oauth2/v2.0/token"
        data = {
            'grant_type': 'client_credentials',
            'client_id': self.tenant.client_id,
            'client_secret': self.tenant.client_secret,
            'scope': self.tenant.endpoints.graph_scope,
        }

        try:
            response = requests.post(token_url, data=data, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            log.error(f"Failed to get Graph access token for {self.tenant.role} tenant: {e}")
            raise ConnectionFailure(f"Authentication to {self.tenant.role} tenant failed: {e}") from e

        token_data = response.json()
        self.access_token = token_data['access_token']
        # Refresh 5 minutes before expiry
        expires_in = token_data.get('expires_in', 3600)
        self.token_expires_at = time.time() + int(expires_in) - 300

        log.debug(f"Obtained Graph access token for {self.tenant.role} tenant")
        return self.access_token

    # ---- HTTP helpers --------------------------------------------------------

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type((httpx.TransportError, GraphThrottled)),
    )
    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._get_access_token()}"}
        resp = self.client.request(method, path, headers=headers, **kwargs)
        if resp.status_code in RETRYABLE_STATUS:
            ra = resp.headers.get("Retry-After")
            if ra:
                try:
                    time.sleep(min(float(ra), 30.0))
                except ValueError:
                    time.sleep(1.0)
            raise GraphThrottled(f"{method} {path} -> {resp.status_code}", status_code=resp.status_code)
        if resp.status_code >= 400:
            raise GraphError(f"{method} {path} -> {resp.status_code}: {resp.text[:200]}",
                             status_code=resp.status_code)
        return resp

    def _get(self, path: str, **kwargs) -> httpx.Response:
        return self._request("GET", path, **kwargs)

    def _post(self, path: str, **kwargs) -> httpx.Response:
        return self._request("POST", path, **kwargs)

    @staticmethod
    def _json(resp: httpx.Response) -> Dict[str, Any]:
        try:
            return resp.json()
        except ValueError as e:
            raise GraphError(f"{resp.request.method} {resp.request.url.path} -> {resp.status_code}: "
                             f"response body is not JSON", status_code=resp.status_code) from e

    def _paged(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """Follow @odata.nextLink until the collection is exhausted."""
        resp = self._get(path, params=params)
        while True:
            payload = self._json(resp)
            yield from payload.get("value", [])
            next_link = payload.get("@odata.nextLink")
            if not next_link:
                return
            resp = self._get(next_link)

    # ---- Connectivity --------------------------------------------------------

    def test_connection(self) -> bool:
        """Verify the tenant is reachable. Raises ConnectionFailure when it is not."""
        try:
            resp = self._get("/organization", params={"$select": "id,displayName"})
        except (GraphError, httpx.HTTPError) as e:
            raise ConnectionFailure(f"Graph connectivity test failed for {self.tenant.role} tenant: {e}") from e

        try:
            orgs = self._json(resp).get("value", [])
        except GraphError as e:
            raise ConnectionFailure(f"Graph connectivity test failed for {self.tenant.role} tenant: {e}") from e
        org_name = orgs[0].get("displayName", "Unknown") if orgs else "Unknown"
        log.info(f"Connected to Microsoft Graph ({self.tenant.cloud}) for organization: {org_name}")
        return True

    # ---- Enumeration ---------------------------------------------------------

    def list_security_groups(self, include_mail_enabled: bool = False) -> Iterator[Dict[str, Any]]:
        flt = "securityEnabled eq true"
        if not include_mail_enabled:
            flt += " and mailEnabled eq false"
        for group in self._paged("/groups", params={"$filter": flt, "$select": GROUP_SELECT, "$top": PAGE_SIZE}):
            # Microsoft 365 groups can be security enabled too; they are out of scope
            if "Unified" in (group.get("groupTypes") or []):
                continue
            yield group

    def list_group_members(self, group_id: str) -> Iterator[Dict[str, Any]]:
        return self._paged(f"/groups/{group_id}/members", params={"$select": OBJECT_SELECT, "$top": PAGE_SIZE})

    def list_group_owners(self, group_id: str) -> Iterator[Dict[str, Any]]:
        return self._paged(f"/groups/{group_id}/owners", params={"$select": OBJECT_SELECT, "$top": PAGE_SIZE})

    # ---- Lookups -------------------------------------------------------------

    def _find(self, collection: str, field: str, value: str) -> List[Dict[str, Any]]:
        if field not in LOOKUP_FIELDS:
            raise ValueError(f"Unsupported lookup field: {field}")
        if collection == "groups" and field == "userPrincipalName":
            raise ValueError("Groups have no userPrincipalName")
        params = {"$filter": f"{field} eq '{escape_odata(value)}'", "$select": OBJECT_SELECT}
        return list(self._paged(f"/{collection}", params=params))

    def find_users(self, field: str, value: str) -> List[Dict[str, Any]]:
        return self._find("users", field, value)

    def find_groups(self, field: str, value: str) -> List[Dict[str, Any]]:
        return self._find("groups", field, value)

    def get_member_ids(self, group_id: str) -> Set[str]:
        return {obj["id"] for obj in self._paged(f"/groups/{group_id}/members", params={"$select": "id"})}

    def get_owner_ids(self, group_id: str) -> Set[str]:
        return {obj["id"] for obj in self._paged(f"/groups/{group_id}/owners", params={"$select": "id"})}

    # ---- Mutations -----------------------------------------------------------

    def create_group(self, display_name: str, security_enabled: bool, mail_enabled: bool,
                     description: Optional[str] = None,
                     mail_nickname: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "displayName": display_name,
            "securityEnabled": security_enabled,
            "mailEnabled": mail_enabled,
            "mailNickname": mail_nickname or fallback_mail_nickname(display_name),
        }
        if description:
            body["description"] = description
        resp = self._post("/groups", json=body)
        return self._json(resp)

    def _add_ref(self, group_id: str, relation: str, object_id: str) -> None:
        body = {"@odata.id": f"{self.graph_endpoint}/directoryObjects/{object_id}"}
        self._post(f"/groups/{group_id}/{relation}/$ref", json=body)

    def add_member(self, group_id: str, object_id: str) -> None:
        self._add_ref(group_id, "members", object_id)

    def add_owner(self, group_id: str, object_id: str) -> None:
        self._add_ref(group_id, "owners", object_id)
