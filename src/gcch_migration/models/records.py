"""
Export records for security groups and their direct relationships.

Records are point-in-time snapshots of the source tenant. Field aliases
are the CSV column names; destination identifiers are never stored.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MemberType(str, Enum):
    USER = "User"
    GROUP = "Group"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (set, frozenset)):
        return ";".join(sorted(value))
    return str(value)


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_row(self) -> Dict[str, str]:
        """Flatten to a CSV row keyed by column name."""
        return {
            field.alias or name: _csv_value(getattr(self, name))
            for name, field in type(self).model_fields.items()
        }

    @classmethod
    def columns(cls) -> list:
        return [field.alias or name for name, field in cls.model_fields.items()]


# ---- Groups ------------------------------------------------------------------

class GroupRecord(_Record):
    display_name: str = Field(alias="DisplayName")
    description: Optional[str] = Field(default=None, alias="Description")
    source_object_id: str = Field(alias="SourceObjectId")
    mail_nickname: Optional[str] = Field(default=None, alias="MailNickname")
    security_enabled: bool = Field(default=True, alias="SecurityEnabled")
    mail_enabled: bool = Field(default=False, alias="MailEnabled")
    group_types: FrozenSet[str] = Field(default_factory=frozenset, alias="GroupTypes")
    created_date_time: Optional[str] = Field(default=None, alias="CreatedDateTime")
    directory_sync_enabled: bool = Field(default=False, alias="DirectorySyncEnabled")
    on_premises_security_identifier: Optional[str] = Field(default=None, alias="OnPremisesSecurityIdentifier")
    visibility: Optional[str] = Field(default=None, alias="Visibility")

    @field_validator("description", "mail_nickname", "created_date_time",
                     "on_premises_security_identifier", "visibility", mode="before")
    @classmethod
    def _optional_text(cls, value):
        return _blank_to_none(value)

    @field_validator("security_enabled", "mail_enabled", "directory_sync_enabled", mode="before")
    @classmethod
    def _flag(cls, value):
        # Graph returns null for directorySyncEnabled on cloud-only groups
        if value is None or (isinstance(value, str) and not value.strip()):
            return False
        return value

    @field_validator("group_types", mode="before")
    @classmethod
    def _group_types(cls, value):
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset(part.strip() for part in value.split(";") if part.strip())
        return frozenset(value)

    @classmethod
    def from_graph(cls, group: Dict[str, Any]) -> "GroupRecord":
        return cls(
            display_name=group.get("displayName") or "",
            description=group.get("description"),
            source_object_id=group["id"],
            mail_nickname=group.get("mailNickname"),
            security_enabled=group.get("securityEnabled"),
            mail_enabled=group.get("mailEnabled"),
            group_types=group.get("groupTypes") or [],
            created_date_time=group.get("createdDateTime"),
            directory_sync_enabled=group.get("onPremisesSyncEnabled"),
            on_premises_security_identifier=group.get("onPremisesSecurityIdentifier"),
            visibility=group.get("visibility"),
        )


# ---- Membership / ownership --------------------------------------------------

class DirectoryEdge(_Record):
    """A direct (non-transitive) relationship from a group to a user or group."""

    group_name: str = Field(alias="GroupName")
    group_source_object_id: str = Field(alias="GroupSourceObjectId")
    member_type: str = Field(alias="MemberType")
    member_display_name: Optional[str] = Field(default=None, alias="MemberDisplayName")
    member_principal_name: Optional[str] = Field(default=None, alias="MemberPrincipalName")
    member_mail_nickname: Optional[str] = Field(default=None, alias="MemberMailNickname")
    member_source_object_id: str = Field(alias="MemberSourceObjectId")

    @field_validator("member_display_name", "member_principal_name", "member_mail_nickname", mode="before")
    @classmethod
    def _optional_text(cls, value):
        return _blank_to_none(value)

    @property
    def label(self) -> str:
        return self.member_display_name or self.member_principal_name or self.member_source_object_id


class MembershipEdge(DirectoryEdge):
    pass


class OwnershipEdge(DirectoryEdge):
    pass


# ---- Destination objects -----------------------------------------------------

class ResolvedIdentity(BaseModel):
    """A destination-tenant user or group matched to a source identity."""
    model_config = ConfigDict(frozen=True)

    object_id: str
    kind: MemberType
    display_name: Optional[str] = None
    principal_name: Optional[str] = None
    mail_nickname: Optional[str] = None
    mail_enabled: bool = False

    @classmethod
    def from_graph(cls, obj: Dict[str, Any], kind: MemberType) -> "ResolvedIdentity":
        return cls(
            object_id=obj["id"],
            kind=kind,
            display_name=obj.get("displayName"),
            principal_name=obj.get("userPrincipalName"),
            mail_nickname=obj.get("mailNickname"),
            mail_enabled=bool(obj.get("mailEnabled")),
        )


__all__ = [
    "MemberType", "GroupRecord", "DirectoryEdge", "MembershipEdge",
    "OwnershipEdge", "ResolvedIdentity",
]
