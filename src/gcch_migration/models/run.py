"""Run options and per-phase results."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class Phase(str, Enum):
    CREATE_GROUPS = "CreateGroups"
    ADD_OWNERS = "AddOwners"
    ADD_MEMBERS = "AddMembers"


# ---- Options -----------------------------------------------------------------

class ImportOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    import_dir: Path = Path(".")
    groups_file: Optional[Path] = None
    members_file: Optional[Path] = None
    owners_file: Optional[Path] = None

    create_groups: bool = False
    add_owners: bool = False
    add_members: bool = False
    all_phases: bool = False

    preview_only: bool = False
    connect: bool = True
    prefix: str = ""
    suffix: str = ""
    skip_existing: bool = True
    continue_on_error: bool = True
    settle_seconds: float = 2.0

    @model_validator(mode="before")
    @classmethod
    def _expand_all(cls, data):
        if isinstance(data, dict) and data.get("all_phases"):
            data = {**data, "create_groups": True, "add_owners": True, "add_members": True}
        return data

    @field_validator("settle_seconds")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("settle_seconds must not be negative")
        return value

    @property
    def phases(self) -> list[Phase]:
        selected = []
        if self.create_groups:
            selected.append(Phase.CREATE_GROUPS)
        if self.add_owners:
            selected.append(Phase.ADD_OWNERS)
        if self.add_members:
            selected.append(Phase.ADD_MEMBERS)
        return selected

    def target_name(self, display_name: str) -> str:
        return f"{self.prefix}{display_name}{self.suffix}"


class ExportOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    output_dir: Path = Path(".")
    connect: bool = True
    include_mail_enabled: bool = False


# ---- Results -----------------------------------------------------------------

class PhaseResult(BaseModel):
    """Counters for one import phase, produced once when the phase ends."""
    model_config = ConfigDict(frozen=True)

    phase: Phase
    processed: int = 0
    created: int = 0
    skipped: int = 0
    would_create: int = 0
    added: int = 0
    already_present: int = 0
    would_add: int = 0
    errors: int = 0
    aborted: bool = False
    input_file: Optional[Path] = None
    skipped_reason: Optional[str] = None

    @property
    def ran(self) -> bool:
        return self.skipped_reason is None
