"""
Export workflow for the source (commercial) tenant.

Enumerates security groups, resolves each group's direct members and
owners into flat edges, and writes the three CSV datasets.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Type

import httpx

from .. import datasets
from ..errors import ConnectionFailure, MigrationError
from ..logger import log_success, run_timestamp
from ..models.records import DirectoryEdge, GroupRecord, MemberType, MembershipEdge, OwnershipEdge
from ..models.run import ExportOptions
from ..services.base import DirectoryService
from .summary import ExportSummary

log = logging.getLogger(__name__)

ODATA_TYPES = {
    "#microsoft.graph.user": MemberType.USER,
    "#microsoft.graph.group": MemberType.GROUP,
}


def edge_from_object(model: Type[DirectoryEdge], group: GroupRecord,
                     obj: Dict[str, Any]) -> Optional[DirectoryEdge]:
    """Flatten one related directory object; None for object types that are not exported."""
    member_type = ODATA_TYPES.get(obj.get("@odata.type", ""))
    if member_type is None:
        return None
    return model(
        group_name=group.display_name,
        group_source_object_id=group.source_object_id,
        member_type=member_type.value,
        member_display_name=obj.get("displayName"),
        member_principal_name=obj.get("userPrincipalName") if member_type is MemberType.USER else None,
        member_mail_nickname=obj.get("mailNickname"),
        member_source_object_id=obj["id"],
    )


class GroupExporter:
    """Collects groups, memberships and ownerships from the source directory."""

    def __init__(self, directory: DirectoryService, options: ExportOptions):
        self.directory = directory
        self.options = options
        self.errors = 0
        self.skipped_objects = 0

    def collect_groups(self) -> List[GroupRecord]:
        groups: List[GroupRecord] = []
        seen = set()
        for raw in self.directory.list_security_groups(self.options.include_mail_enabled):
            record = GroupRecord.from_graph(raw)
            if record.source_object_id in seen:
                log.warning(f"Duplicate group {record.display_name} ({record.source_object_id}) ignored")
                continue
            seen.add(record.source_object_id)
            groups.append(record)
        log.info(f"Found {len(groups)} security group(s)"
                 f"{' including mail-enabled' if self.options.include_mail_enabled else ''}")
        return groups

    def _collect_edges(self, groups: Iterable[GroupRecord], model: Type[DirectoryEdge],
                       lister, relation: str) -> List[DirectoryEdge]:
        edges: List[DirectoryEdge] = []
        for group in groups:
            try:
                related = list(lister(group.source_object_id))
            except ConnectionFailure:
                raise
            except (MigrationError, httpx.HTTPError) as e:
                log.error(f"Failed to list {relation} of {group.display_name} ({group.source_object_id}): {e}")
                self.errors += 1
                continue

            for obj in related:
                edge = edge_from_object(model, group, obj)
                if edge is None:
                    log.warning(f"Skipping {relation[:-1]} of {group.display_name} with unsupported type "
                                f"{obj.get('@odata.type', 'unknown')}: {obj.get('displayName') or obj.get('id')}")
                    self.skipped_objects += 1
                    continue
                edges.append(edge)
            log.debug(f"{group.display_name}: {len(related)} {relation}")
        return edges

    def collect_members(self, groups: Iterable[GroupRecord]) -> List[DirectoryEdge]:
        return self._collect_edges(groups, MembershipEdge, self.directory.list_group_members, "members")

    def collect_owners(self, groups: Iterable[GroupRecord]) -> List[DirectoryEdge]:
        return self._collect_edges(groups, OwnershipEdge, self.directory.list_group_owners, "owners")

    def run(self, timestamp: Optional[str] = None) -> ExportSummary:
        stamp = timestamp or run_timestamp()
        out = Path(self.options.output_dir)

        groups = self.collect_groups()
        members = self.collect_members(groups)
        owners = self.collect_owners(groups)

        paths: Dict[str, Path] = {kind: out / datasets.dataset_filename(kind, stamp)
                                  for kind in ("groups", "members", "owners")}
        datasets.write_records(paths["groups"], groups, GroupRecord)
        datasets.write_records(paths["members"], members, MembershipEdge)
        datasets.write_records(paths["owners"], owners, OwnershipEdge)
        log_success(log, f"Export written to {out.resolve()}")

        return ExportSummary(
            groups=len(groups),
            memberships=len(members),
            ownerships=len(owners),
            skipped_objects=self.skipped_objects,
            errors=self.errors,
            groups_file=paths["groups"],
            members_file=paths["members"],
            owners_file=paths["owners"],
        )


def run_export(directory: DirectoryService, options: ExportOptions,
               timestamp: Optional[str] = None) -> ExportSummary:
    return GroupExporter(directory, options).run(timestamp)
