"""
CSV storage for exported groups, memberships and ownerships.

File names embed the export timestamp (yyyyMMdd_HHmmss) so several exports
can live in one directory; discovery picks the most recently modified file
for each dataset.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Type, TypeVar

from pydantic import ValidationError

from .errors import DatasetError
from .models.records import GroupRecord, MembershipEdge, OwnershipEdge, _Record

log = logging.getLogger(__name__)

GROUPS_PREFIX = "SecurityGroups"
MEMBERS_PREFIX = "SecurityGroupMembers"
OWNERS_PREFIX = "SecurityGroupOwners"

DATASET_PREFIXES = {
    "groups": GROUPS_PREFIX,
    "members": MEMBERS_PREFIX,
    "owners": OWNERS_PREFIX,
}

R = TypeVar("R", bound=_Record)


def dataset_filename(kind: str, timestamp: str) -> str:
    return f"{DATASET_PREFIXES[kind]}_{timestamp}.csv"


def discover_latest(directory: Path, kind: str) -> Optional[Path]:
    """Return the most recently modified `<prefix>_*.csv` in directory, if any."""
    directory = Path(directory)
    if not directory.is_dir():
        return None
    # The trailing underscore keeps "SecurityGroups_" from matching "SecurityGroupMembers_"
    candidates = [p for p in directory.glob(f"{DATASET_PREFIXES[kind]}_*.csv") if p.is_file()]
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)


def write_records(path: Path, records: Iterable[_Record], model: Type[_Record]) -> int:
    """Write records with a header row. Returns the number of rows written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=model.columns())
        writer.writeheader()
        for record in records:
            writer.writerow(record.to_row())
            count += 1
    log.debug(f"Wrote {count} rows to {path}")
    return count


def read_records(path: Path, model: Type[R]) -> List[R]:
    """Read and validate every row of a dataset file."""
    path = Path(path)
    if not path.is_file():
        raise DatasetError(f"Input file not found: {path}")

    records: List[R] = []
    # utf-8-sig tolerates files re-saved by Excel
    with open(path, "r", newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        missing = [c for c in _required_columns(model) if c not in (reader.fieldnames or [])]
        if missing:
            raise DatasetError(f"{path.name} is missing column(s): {', '.join(missing)}")
        for line_no, row in enumerate(reader, start=2):
            try:
                records.append(model.model_validate(row))
            except ValidationError as e:
                raise DatasetError(f"{path.name} line {line_no}: {e.errors()[0].get('msg')}") from e
    return records


def _required_columns(model: Type[_Record]) -> Sequence[str]:
    return [f.alias or n for n, f in model.model_fields.items() if f.is_required()]


def read_groups(path: Path) -> List[GroupRecord]:
    groups = read_records(path, GroupRecord)
    seen: Dict[str, str] = {}
    for g in groups:
        if g.source_object_id in seen:
            raise DatasetError(
                f"{Path(path).name}: SourceObjectId {g.source_object_id} appears more than once "
                f"('{seen[g.source_object_id]}' and '{g.display_name}')"
            )
        seen[g.source_object_id] = g.display_name
    return groups


def read_members(path: Path) -> List[MembershipEdge]:
    return read_records(path, MembershipEdge)


def read_owners(path: Path) -> List[OwnershipEdge]:
    return read_records(path, OwnershipEdge)
