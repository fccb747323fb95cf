"""End-of-run reports for export and import runs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..logger import log_success
from ..models.run import ImportOptions, Phase, PhaseResult

log = logging.getLogger(__name__)

RULE = "=" * 60


class ImportSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    options: ImportOptions
    results: List[PhaseResult] = Field(default_factory=list)

    def result(self, phase: Phase) -> Optional[PhaseResult]:
        for r in self.results:
            if r.phase is phase:
                return r
        return None

    @property
    def total_errors(self) -> int:
        return sum(r.errors for r in self.results)

    @property
    def counts(self) -> Dict[str, int]:
        groups = self.result(Phase.CREATE_GROUPS)
        owners = self.result(Phase.ADD_OWNERS)
        members = self.result(Phase.ADD_MEMBERS)
        return {
            "Created": groups.created if groups else 0,
            "Skipped": groups.skipped if groups else 0,
            "OwnersAdded": owners.added if owners else 0,
            "MembersAdded": members.added if members else 0,
            "Errors": self.total_errors,
        }

    def render(self) -> List[str]:
        o = self.options
        lines = [
            RULE,
            "IMPORT SUMMARY" + (" (PREVIEW ONLY - no changes made)" if o.preview_only else ""),
            RULE,
            f"Group name prefix: '{o.prefix}'",
            f"Group name suffix: '{o.suffix}'",
            f"Preview only: {o.preview_only}",
            f"Skip existing groups: {o.skip_existing}",
            f"Continue on error: {o.continue_on_error}",
        ]
        for r in self.results:
            lines.append("")
            lines.append(f"[{r.phase.value}] file: {r.input_file or 'n/a'}")
            if not r.ran:
                lines.append(f"  NOT RUN: {r.skipped_reason}")
                lines.append(f"  Errors: {r.errors}")
                continue
            if r.phase is Phase.CREATE_GROUPS:
                lines.append(f"  Created: {r.created}")
                lines.append(f"  Skipped (already exist): {r.skipped}")
                if o.preview_only:
                    lines.append(f"  Would create: {r.would_create}")
            else:
                lines.append(f"  Added: {r.added}")
                lines.append(f"  Already present: {r.already_present}")
                if o.preview_only:
                    lines.append(f"  Would add: {r.would_add}")
            lines.append(f"  Errors: {r.errors}")
            if r.aborted:
                lines.append("  ABORTED after first failure (continue-on-error disabled)")
        lines.append("")
        lines.append(f"Total errors: {self.total_errors}")
        lines.append(RULE)
        return lines

    def log_report(self, logger: Optional[logging.Logger] = None) -> None:
        _emit(self.render(), self.total_errors, logger or log)


class ExportSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    groups: int = 0
    memberships: int = 0
    ownerships: int = 0
    skipped_objects: int = 0
    errors: int = 0
    groups_file: Optional[Path] = None
    members_file: Optional[Path] = None
    owners_file: Optional[Path] = None

    def render(self) -> List[str]:
        return [
            RULE,
            "EXPORT SUMMARY",
            RULE,
            f"Security groups: {self.groups}",
            f"Membership edges: {self.memberships}",
            f"Ownership edges: {self.ownerships}",
            f"Unsupported objects skipped: {self.skipped_objects}",
            f"Errors: {self.errors}",
            "",
            f"Groups file: {self.groups_file}",
            f"Members file: {self.members_file}",
            f"Owners file: {self.owners_file}",
            RULE,
        ]

    def log_report(self, logger: Optional[logging.Logger] = None) -> None:
        _emit(self.render(), self.errors, logger or log)


def _emit(lines: List[str], errors: int, logger: logging.Logger) -> None:
    for line in lines:
        logger.info(line)
    if errors:
        logger.warning(f"Run completed with {errors} error(s); see the error log for details")
    else:
        log_success(logger, "Run completed without errors")
