"""
Destination-tenant identity resolution.

Source and destination object ids never match across tenants, so every
user and group is found again by name. Each lookup is an exact-equality
query and only a single unambiguous hit counts as a match: several hits
are treated exactly like none, and the resolver never picks among
candidates. Lookups that fail remotely are logged and reported as not
found as well. A ConnectionFailure is never swallowed here: losing the
tenant ends the run.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

import httpx

from .errors import ConnectionFailure, MigrationError
from .models.records import MemberType, ResolvedIdentity
from .services.base import DirectoryService

log = logging.getLogger(__name__)


class ResolutionStatus(str, Enum):
    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"
    AMBIGUOUS = "AMBIGUOUS"
    LOOKUP_FAILED = "LOOKUP_FAILED"


class Resolution(NamedTuple):
    status: ResolutionStatus
    identity: Optional[ResolvedIdentity] = None
    detail: str = ""

    @property
    def found(self) -> bool:
        return self.status is ResolutionStatus.FOUND


class IdentityResolver:
    """Finds the destination user or group matching a source identity."""

    def __init__(self, directory: DirectoryService):
        self.directory = directory

    def _attempt(self, finder: Callable[[str, str], List[Dict]], kind: MemberType,
                 field: str, value: str) -> Resolution:
        try:
            hits = finder(field, value)
        except ConnectionFailure:
            raise
        except (MigrationError, httpx.HTTPError) as e:
            log.warning(f"{kind.value} lookup by {field} '{value}' failed: {e}")
            return Resolution(ResolutionStatus.LOOKUP_FAILED, detail=f"{field} lookup failed: {e}")

        if len(hits) == 1:
            return Resolution(ResolutionStatus.FOUND, ResolvedIdentity.from_graph(hits[0], kind),
                              detail=f"matched by {field}")
        if len(hits) > 1:
            log.warning(f"{kind.value} lookup by {field} '{value}' is ambiguous ({len(hits)} matches)")
            return Resolution(ResolutionStatus.AMBIGUOUS, detail=f"{len(hits)} matches by {field}")
        return Resolution(ResolutionStatus.NOT_FOUND, detail=f"no match by {field}")

    def _resolve(self, finder, kind: MemberType, steps: List[Tuple[str, Optional[str]]]) -> Resolution:
        outcomes: List[Resolution] = []
        for field, value in steps:
            if not value or not value.strip():
                continue
            outcome = self._attempt(finder, kind, field, value)
            if outcome.found:
                return outcome
            outcomes.append(outcome)

        if not outcomes:
            return Resolution(ResolutionStatus.NOT_FOUND, detail="no name to match on")
        # Report the most informative miss: a failed lookup, then ambiguity, then absence
        for status in (ResolutionStatus.LOOKUP_FAILED, ResolutionStatus.AMBIGUOUS):
            for outcome in outcomes:
                if outcome.status is status:
                    return Resolution(status, detail="; ".join(o.detail for o in outcomes))
        return Resolution(ResolutionStatus.NOT_FOUND, detail="; ".join(o.detail for o in outcomes))

    # ---- Users ---------------------------------------------------------------

    def resolve_user_detailed(self, display_name: Optional[str],
                              mail_nickname: Optional[str] = None,
                              original_principal_name: Optional[str] = None) -> Resolution:
        return self._resolve(self.directory.find_users, MemberType.USER, [
            ("displayName", display_name),
            ("mailNickname", mail_nickname),
            ("userPrincipalName", original_principal_name),
        ])

    def resolve_user(self, display_name: Optional[str],
                     mail_nickname: Optional[str] = None,
                     original_principal_name: Optional[str] = None) -> Optional[ResolvedIdentity]:
        return self.resolve_user_detailed(display_name, mail_nickname, original_principal_name).identity

    # ---- Groups --------------------------------------------------------------

    def resolve_group_detailed(self, display_name: Optional[str],
                               mail_nickname: Optional[str] = None,
                               prefix: str = "", suffix: str = "") -> Resolution:
        full_name = f"{prefix}{display_name}{suffix}" if display_name and display_name.strip() else None
        return self._resolve(self.directory.find_groups, MemberType.GROUP, [
            ("displayName", full_name),
            ("mailNickname", mail_nickname),
        ])

    def resolve_group(self, display_name: Optional[str],
                      mail_nickname: Optional[str] = None,
                      prefix: str = "", suffix: str = "") -> Optional[ResolvedIdentity]:
        return self.resolve_group_detailed(display_name, mail_nickname, prefix, suffix).identity
