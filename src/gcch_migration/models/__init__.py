from .records import (
    DirectoryEdge,
    GroupRecord,
    MemberType,
    MembershipEdge,
    OwnershipEdge,
    ResolvedIdentity,
)
from .run import ExportOptions, ImportOptions, Phase, PhaseResult

__all__ = [
    "DirectoryEdge", "GroupRecord", "MemberType", "MembershipEdge", "OwnershipEdge",
    "ResolvedIdentity", "ExportOptions", "ImportOptions", "Phase", "PhaseResult",
]
