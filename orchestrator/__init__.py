"""
Orchestration package for coordinating the export pipeline.

This package sequences a run: the manifest is read lazily, each UMDM and its
UMAM children are exported in order, and a report is produced at the end.
"""

from .manifest_reader import ManifestParseError, read_manifest
from .export_orchestrator import ExportError, ExportOrchestrator, PlannedObject
from .export_report import ExportReport

__all__ = [
    'ManifestParseError',
    'read_manifest',
    'ExportError',
    'ExportOrchestrator',
    'PlannedObject',
    'ExportReport'
]
