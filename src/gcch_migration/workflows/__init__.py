# gcch_migration.workflows package
from .export import GroupExporter, run_export
from .importer import GroupImporter, run_import
from .summary import ExportSummary, ImportSummary

__all__ = [
    "GroupExporter",
    "run_export",
    "GroupImporter",
    "run_import",
    "ExportSummary",
    "ImportSummary",
]
