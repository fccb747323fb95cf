"""
Import workflow for the destination (GCC High) tenant.

Three independent phases, each safe to re-run:
1. Create groups (optionally skipping ones that already exist)
2. Add owners
3. Add members

Every record is handled on its own: lookups that miss are logged and
counted, mutations that fail are logged and counted, and only a mutation
failure with continue-on-error disabled stops a phase early. Preview mode
runs every lookup but no mutation. A ConnectionFailure from any call
propagates and ends the run.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx

from .. import datasets
from ..errors import ConnectionFailure, DatasetError, MigrationError
from ..logger import log_migration_action
from ..models.records import DirectoryEdge, GroupRecord, MemberType, ResolvedIdentity
from ..models.run import ImportOptions, Phase, PhaseResult
from ..resolver import IdentityResolver
from ..services.base import DirectoryService
from ..services.exchange import ExchangeOnlineService
from .summary import ImportSummary

log = logging.getLogger(__name__)

MUTATION_ERRORS = (MigrationError, httpx.HTTPError)


def bucket_by_group(edges: Iterable[DirectoryEdge]) -> Dict[str, List[DirectoryEdge]]:
    """Group edges by GroupName, keeping first-appearance order of groups and edges."""
    buckets: Dict[str, List[DirectoryEdge]] = {}
    for edge in edges:
        buckets.setdefault(edge.group_name, []).append(edge)
    return buckets


class GroupImporter:
    """Applies exported groups, owners and members to the destination directory."""

    def __init__(self, directory: DirectoryService, options: ImportOptions,
                 mail_service: Optional[ExchangeOnlineService] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.directory = directory
        self.options = options
        self.mail_service = mail_service
        self.resolver = IdentityResolver(directory)
        self._sleep = sleep

    # ---- Phase 1: groups -----------------------------------------------------

    def create_groups(self, records: Sequence[GroupRecord], input_file: Optional[Path] = None) -> PhaseResult:
        o = self.options
        tally: Counter = Counter()
        aborted = False

        log.info(f"Creating {len(records)} group(s){' [PREVIEW]' if o.preview_only else ''}")
        for record in records:
            tally["processed"] += 1
            target_name = o.target_name(record.display_name)

            if o.skip_existing:
                existing = self.resolver.resolve_group(record.display_name, record.mail_nickname,
                                                       o.prefix, o.suffix)
                if existing:
                    log_migration_action(target_name, "CREATE_GROUP", "SKIPPED",
                                         f"already exists ({existing.object_id})")
                    tally["skipped"] += 1
                    continue

            if o.preview_only:
                log_migration_action(target_name, "CREATE_GROUP", "PREVIEW",
                                     f"would create (mailEnabled={record.mail_enabled})")
                tally["would_create"] += 1
                continue

            try:
                created = self._create(record, target_name)
            except ConnectionFailure:
                raise
            except MUTATION_ERRORS as e:
                log_migration_action(target_name, "CREATE_GROUP", "FAILED", str(e))
                tally["errors"] += 1
                if not o.continue_on_error:
                    log.error("Stopping group creation: continue-on-error is disabled")
                    aborted = True
                    break
                continue

            log_migration_action(target_name, "CREATE_GROUP", "SUCCESS", f"id={created.get('id')}")
            tally["created"] += 1
            if o.settle_seconds:
                # Give directory replication a moment before the next lookup
                self._sleep(o.settle_seconds)

        return PhaseResult(phase=Phase.CREATE_GROUPS, aborted=aborted, input_file=input_file, **tally)

    def _create(self, record: GroupRecord, target_name: str) -> Dict:
        if record.mail_enabled and self.mail_service:
            return self.mail_service.create_mail_enabled_security_group(
                target_name, record.mail_nickname, record.description
            )
        return self.directory.create_group(
            target_name,
            security_enabled=record.security_enabled,
            mail_enabled=record.mail_enabled,
            description=record.description,
            mail_nickname=record.mail_nickname or None,
        )

    # ---- Phases 2 and 3: owners / members ------------------------------------

    def add_owners(self, edges: Sequence[DirectoryEdge],
                   group_index: Optional[Dict[str, GroupRecord]] = None,
                   input_file: Optional[Path] = None) -> PhaseResult:
        return self.converge_edges(Phase.ADD_OWNERS, edges, group_index, input_file)

    def add_members(self, edges: Sequence[DirectoryEdge],
                    group_index: Optional[Dict[str, GroupRecord]] = None,
                    input_file: Optional[Path] = None) -> PhaseResult:
        return self.converge_edges(Phase.ADD_MEMBERS, edges, group_index, input_file)

    def converge_edges(self, phase: Phase, edges: Sequence[DirectoryEdge],
                       group_index: Optional[Dict[str, GroupRecord]] = None,
                       input_file: Optional[Path] = None) -> PhaseResult:
        """
        Make every exported edge present on the matching destination group.

        Args:
            phase: Phase.ADD_OWNERS or Phase.ADD_MEMBERS
            edges: Edges in export order
            group_index: Exported groups by SourceObjectId, used for the
                mail-nickname fallback when locating the target group
            input_file: File the edges came from (reported in the summary)
        """
        o = self.options
        owners = phase is Phase.ADD_OWNERS
        action = "ADD_OWNER" if owners else "ADD_MEMBER"
        group_index = group_index or {}
        tally: Counter = Counter()
        aborted = False

        buckets = bucket_by_group(edges)
        log.info(f"{phase.value}: {len(edges)} edge(s) across {len(buckets)} group(s)"
                 f"{' [PREVIEW]' if o.preview_only else ''}")

        for group_name, bucket in buckets.items():
            source_group = group_index.get(bucket[0].group_source_object_id)
            resolution = self.resolver.resolve_group_detailed(
                group_name, source_group.mail_nickname if source_group else None, o.prefix, o.suffix
            )
            if not resolution.found:
                log_migration_action(o.target_name(group_name), action, "NOT_FOUND",
                                     f"target group not found ({resolution.detail}); "
                                     f"skipping {len(bucket)} edge(s)")
                tally["errors"] += 1
                continue
            target = resolution.identity
            current_ids: Optional[set] = None

            for edge in bucket:
                tally["processed"] += 1
                subject = f"{target.display_name} -> {edge.label}"

                identity = self._resolve_edge(edge, subject, action)
                if identity is None:
                    tally["errors"] += 1
                    continue

                if o.preview_only:
                    log_migration_action(subject, action, "PREVIEW", f"would add {identity.kind.value.lower()}")
                    tally["would_add"] += 1
                    continue

                if current_ids is None:
                    try:
                        current_ids = (self.directory.get_owner_ids(target.object_id) if owners
                                       else self.directory.get_member_ids(target.object_id))
                    except ConnectionFailure:
                        raise
                    except MUTATION_ERRORS as e:
                        # Without the current set every add could be a duplicate
                        log_migration_action(target.display_name, action, "FAILED",
                                             f"could not read current {'owners' if owners else 'members'} "
                                             f"({e}); skipping {len(bucket)} edge(s)")
                        tally["errors"] += 1
                        if not o.continue_on_error:
                            log.error(f"Stopping {phase.value}: continue-on-error is disabled")
                            aborted = True
                        break

                if identity.object_id in current_ids:
                    log_migration_action(subject, action, "PRESENT", "already present")
                    tally["already_present"] += 1
                    continue

                try:
                    self._attach(owners, target, identity)
                except ConnectionFailure:
                    raise
                except MUTATION_ERRORS as e:
                    log_migration_action(subject, action, "FAILED", str(e))
                    tally["errors"] += 1
                    if not o.continue_on_error:
                        log.error(f"Stopping {phase.value}: continue-on-error is disabled")
                        aborted = True
                        break
                    continue

                current_ids.add(identity.object_id)
                log_migration_action(subject, action, "SUCCESS")
                tally["added"] += 1

            if aborted:
                break

        return PhaseResult(phase=phase, aborted=aborted, input_file=input_file, **tally)

    def _resolve_edge(self, edge: DirectoryEdge, subject: str, action: str) -> Optional[ResolvedIdentity]:
        o = self.options
        if edge.member_type == MemberType.USER.value:
            resolution = self.resolver.resolve_user_detailed(
                edge.member_display_name, edge.member_mail_nickname, edge.member_principal_name
            )
        elif edge.member_type == MemberType.GROUP.value:
            resolution = self.resolver.resolve_group_detailed(
                edge.member_display_name, edge.member_mail_nickname, o.prefix, o.suffix
            )
        else:
            log_migration_action(subject, action, "FAILED", f"unsupported member type '{edge.member_type}'")
            return None

        if not resolution.found:
            log_migration_action(subject, action, "NOT_FOUND",
                                 f"{edge.member_type} not found in destination ({resolution.detail})")
            return None
        return resolution.identity

    def _attach(self, owners: bool, target: ResolvedIdentity, identity: ResolvedIdentity) -> None:
        if owners:
            self.directory.add_owner(target.object_id, identity.object_id)
        elif target.mail_enabled and self.mail_service:
            self.mail_service.add_distribution_group_member(target.object_id, identity.object_id)
        else:
            self.directory.add_member(target.object_id, identity.object_id)


# ---- Orchestration -----------------------------------------------------------

def resolve_input(explicit: Optional[Path], import_dir: Path, kind: str) -> Optional[Path]:
    if explicit:
        return Path(explicit)
    return datasets.discover_latest(import_dir, kind)


def _phase_not_run(phase: Phase, path: Optional[Path], reason: str) -> PhaseResult:
    log.error(f"{phase.value} skipped: {reason}")
    return PhaseResult(phase=phase, errors=1, input_file=path, skipped_reason=reason)


def load_groups(options: ImportOptions) -> Tuple[Optional[Path], Optional[List[GroupRecord]], Optional[str]]:
    """Return (path, records, problem) for the groups dataset."""
    path = resolve_input(options.groups_file, options.import_dir, "groups")
    if path is None:
        return None, None, f"no groups file found in {options.import_dir}"
    try:
        return path, datasets.read_groups(path), None
    except DatasetError as e:
        return path, None, str(e)


def run_import(directory: DirectoryService, options: ImportOptions,
               mail_service: Optional[ExchangeOnlineService] = None,
               sleep: Callable[[float], None] = time.sleep) -> ImportSummary:
    """Run the selected phases in order and return the run summary."""
    importer = GroupImporter(directory, options, mail_service=mail_service, sleep=sleep)
    results: List[PhaseResult] = []

    groups_path, groups, problem = load_groups(options)
    group_index = {g.source_object_id: g for g in groups or []}

    if options.create_groups:
        if groups is None:
            results.append(_phase_not_run(Phase.CREATE_GROUPS, groups_path, problem))
        else:
            results.append(importer.create_groups(groups, input_file=groups_path))
    elif problem:
        log.debug(f"Groups dataset unavailable for mail-nickname fallback: {problem}")

    for phase, explicit, kind, reader in (
        (Phase.ADD_OWNERS, options.owners_file, "owners", datasets.read_owners),
        (Phase.ADD_MEMBERS, options.members_file, "members", datasets.read_members),
    ):
        if phase not in options.phases:
            continue
        path = resolve_input(explicit, options.import_dir, kind)
        if path is None:
            results.append(_phase_not_run(phase, None, f"no {kind} file found in {options.import_dir}"))
            continue
        try:
            edges = reader(path)
        except DatasetError as e:
            results.append(_phase_not_run(phase, path, str(e)))
            continue
        results.append(importer.converge_edges(phase, edges, group_index, input_file=path))

    return ImportSummary(options=options, results=results)
