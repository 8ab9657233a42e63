"""Output side of the export pipeline.

Package Structure:
- object_handler: Writes each object's datastream files (and YAML sidecar) into its directory
- export_writer: Writes the export index (export.csv) row by row

Key Features:
- Target directory passed explicitly for every object; no state carried between objects
- Datastream content streamed to disk through ``.part`` files
- Index rows flushed as they are written
"""

from .object_handler import ObjectHandler, ObjectWriteSession, OutputError, extension_for, safe_filename
from .export_writer import CSVExportWriter, ExportWriter, INDEX_HEADER, normalize_title

__all__ = [
    'ObjectHandler',
    'ObjectWriteSession',
    'OutputError',
    'extension_for',
    'safe_filename',
    'ExportWriter',
    'CSVExportWriter',
    'INDEX_HEADER',
    'normalize_title'
]
