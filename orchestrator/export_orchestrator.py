"""
Export orchestrator driving the manifest through resolver, processor, handler and index writer.

The manifest is streamed once. Each UMDM is exported (index row, directory,
datastreams) before its UMAM children, and each child before its next sibling,
so the directory tree and the index are produced in exact manifest order. The
first failure aborts the run; whatever was flushed before it stays on disk.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from tqdm import tqdm

from exporters import ExportWriter, ObjectHandler
from foxml import FoxmlObjectProcessor, ResolutionContext
from logger import ProgressTracker, log_section
from models import DatastreamVersions, ExportLayout, ExportStats, ObjectExportResult, UmdmRecord
from orchestrator.manifest_reader import ManifestParseError, read_manifest


class ExportError(Exception):
    """Fatal export failure, identifying the object and source being processed."""

    def __init__(
        self,
        message: str,
        pid: Optional[str] = None,
        source: Optional[str] = None,
        parent_pid: Optional[str] = None
    ):
        self.pid = pid
        self.source = source
        self.parent_pid = parent_pid
        super().__init__(message)


@dataclass(frozen=True)
class PlannedObject:
    """One object the export would produce, with its relative output location."""

    pid: str
    parent_pid: Optional[str]
    location: str
    source: str


class ExportOrchestrator:
    """Coordinates a single export run over one manifest stream."""

    def __init__(
        self,
        target_dir: Union[str, Path],
        export_writer: ExportWriter,
        handler: ObjectHandler,
        manifest: Iterable[Union[str, bytes]],
        resolution_context: ResolutionContext,
        foxml_base_dir: Optional[Union[str, Path]] = None,
        datastream_versions: Union[str, DatastreamVersions] = DatastreamVersions.LATEST,
        fetch_external_content: bool = True,
        show_progress: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the export orchestrator.

        Args:
            target_dir: Root of the output tree
            export_writer: ExportWriter receiving one row per exported object
            handler: ObjectHandler writing each object's files
            manifest: Manifest lines (one JSON object per line, text or UTF-8 bytes), consumed once
            resolution_context: Resolver and repository host shared by all processors
            foxml_base_dir: Base directory for relative FOXML paths (optional)
            datastream_versions: 'latest' or 'all'
            fetch_external_content: Fetch E/R datastream content instead of only recording it
            show_progress: Display a tqdm progress bar
            logger: Logger instance (optional)
        """
        self.target_dir = Path(target_dir)
        self.export_writer = export_writer
        self.handler = handler
        self.manifest = manifest
        self.resolution_context = resolution_context
        self.foxml_base_dir = Path(foxml_base_dir) if foxml_base_dir else None
        self.datastream_versions = DatastreamVersions(datastream_versions)
        self.fetch_external_content = fetch_external_content
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger('fedora_export.orchestrator')

        self.stats: Optional[ExportStats] = None
        self._consumed = False

    def run(self) -> ExportStats:
        """
        Export every object in the manifest.

        Returns:
            ExportStats for the completed run (also kept on ``self.stats``)

        Raises:
            ExportError: On the first failure, with the failing pid and source
        """
        log_section("Export", self.logger)
        self.logger.info(f"Exporting to {self.target_dir}")

        stats = ExportStats()
        self.stats = stats
        layout = ExportLayout(self.target_dir)
        start_time = time.time()

        try:
            with ProgressTracker(total_items=None, item_type='UMDM objects', logger=self.logger) as tracker:
                for umdm in tqdm(self._records(), desc='Exporting', unit=' umdm', disable=not self.show_progress):
                    self._export_umdm(umdm, layout, stats)
                    tracker.increment(success=True)
        except ExportError as e:
            stats.failed_pid = e.pid
            stats.error = str(e)
            self.logger.error(f"Export aborted: {e}", exc_info=True)
            raise
        finally:
            stats.duration_seconds = time.time() - start_time

        self.logger.info(
            f"Export complete: {stats.umdm_count} UMDM, {stats.umam_count} UMAM, "
            f"{stats.datastreams_written} datastream files, {stats.bytes_written} bytes "
            f"in {stats.duration_seconds:.2f}s"
        )
        return stats

    def plan(self) -> Iterator[PlannedObject]:
        """
        Yield the objects a run would export, without writing anything.

        Directory collisions are detected exactly as in :meth:`run`.

        Raises:
            ExportError: On a manifest error or directory collision
        """
        layout = ExportLayout(self.target_dir)
        for umdm in self._records():
            location = layout.umdm_location(umdm)
            with self._object_context(umdm.pid, umdm.foxml):
                layout.claim(location, umdm.pid)
            yield PlannedObject(umdm.pid, None, location, str(self.resolve_source(umdm.foxml)))

            for umam in umdm.has_part:
                location = layout.umam_location(umdm, umam)
                with self._object_context(umam.pid, umam.foxml, parent_pid=umdm.pid):
                    layout.claim(location, umam.pid)
                yield PlannedObject(umam.pid, umdm.pid, location, str(self.resolve_source(umam.foxml)))

    def _records(self) -> Iterator[UmdmRecord]:
        if self._consumed:
            raise RuntimeError("The manifest stream has already been consumed")
        self._consumed = True

        try:
            yield from read_manifest(self.manifest)
        except ManifestParseError as e:
            raise ExportError(f"Invalid manifest: {e}", source=f"manifest line {e.line_number}") from e
        except UnicodeDecodeError as e:
            raise ExportError(f"Manifest is not valid UTF-8: {e}", source='manifest') from e

    def _export_umdm(self, umdm: UmdmRecord, layout: ExportLayout, stats: ExportStats) -> None:
        self.logger.info(f"Processing UMDM={umdm.pid} @ {umdm.foxml}")
        with self._object_context(umdm.pid, umdm.foxml):
            self.export_writer.record_parent(umdm)
            umdm_dir = layout.claim(layout.umdm_location(umdm), umdm.pid)
            result = self.process(umdm.foxml, umdm_dir)
        stats.umdm_count += 1
        stats.add_object(result)

        for umam in umdm.has_part:
            self.logger.info(f"Processing UMDM={umdm.pid}, UMAM={umam.pid} @ {umam.foxml}")
            with self._object_context(umam.pid, umam.foxml, parent_pid=umdm.pid):
                self.export_writer.record_child(umdm, umam)
                umam_dir = layout.claim(layout.umam_location(umdm, umam), umam.pid)
                result = self.process(umam.foxml, umam_dir)
            stats.umam_count += 1
            stats.add_object(result)

    @contextmanager
    def _object_context(self, pid: str, source: str, parent_pid: Optional[str] = None):
        try:
            yield
        except ExportError:
            raise
        except Exception as e:
            owner = f"{pid} (part of {parent_pid})" if parent_pid else pid
            raise ExportError(
                f"Failed to export {owner} from {source}: {e}",
                pid=pid,
                source=source,
                parent_pid=parent_pid
            ) from e

    def resolve_source(self, foxml: str) -> Path:
        """Resolve a manifest FOXML reference against the configured base directory."""
        path = Path(foxml)
        if self.foxml_base_dir is not None and not path.is_absolute():
            return self.foxml_base_dir / path
        return path

    def create_processor(self, source_path: Path) -> FoxmlObjectProcessor:
        """Create the FOXML processor for one object's source file."""
        return FoxmlObjectProcessor(
            source_path,
            self.resolution_context,
            datastream_versions=self.datastream_versions,
            fetch_external_content=self.fetch_external_content,
            logger=self.logger.getChild('foxml')
        )

    def process(self, foxml: str, target_dir: Path) -> ObjectExportResult:
        processor = self.create_processor(self.resolve_source(foxml))
        return processor.process_object(self.handler, target_dir)
