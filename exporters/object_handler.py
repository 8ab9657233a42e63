"""Object handler that materializes exported datastreams as files."""

import logging
import mimetypes
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import yaml

from models import Datastream, DatastreamVersion, DatastreamVersions, FedoraObjectInfo, ObjectExportResult
from resolvers import ContentSource

# Preferred extensions for MIME types common in Fedora repositories
MIME_EXTENSIONS = {
    'text/xml': '.xml',
    'application/xml': '.xml',
    'application/rdf+xml': '.rdf',
    'text/plain': '.txt',
    'text/html': '.html',
    'text/csv': '.csv',
    'application/pdf': '.pdf',
    'application/json': '.json',
    'image/jpeg': '.jpg',
    'image/jpg': '.jpg',
    'image/tiff': '.tif',
    'image/png': '.png',
    'image/gif': '.gif',
    'image/jp2': '.jp2',
    'audio/mpeg': '.mp3',
    'audio/x-wav': '.wav',
    'video/mp4': '.mp4',
    'application/zip': '.zip',
}

UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9._-]')


class OutputError(Exception):
    """Raised when an object's output directory or files cannot be written."""

    def __init__(self, path: Path, message: str):
        self.path = str(path)
        super().__init__(f"{message}: {self.path}")


def extension_for(mime_type: Optional[str]) -> str:
    """Return a file extension for a MIME type, or '' if none is known."""
    if not mime_type:
        return ''
    mime_type = mime_type.split(';', 1)[0].strip().lower()
    if mime_type in MIME_EXTENSIONS:
        return MIME_EXTENSIONS[mime_type]
    return mimetypes.guess_extension(mime_type) or ''


def safe_filename(name: str) -> str:
    return UNSAFE_FILENAME_CHARS.sub('_', name) or '_'


class ObjectHandler:
    """
    Writes one object's datastreams into a directory.

    The handler itself is stateless between objects: every call to
    :meth:`open_object` receives its target directory and returns a new
    :class:`ObjectWriteSession` that lives for that object only.
    """

    def __init__(
        self,
        metadata_file: Optional[str] = 'object.yaml',
        overwrite: bool = False,
        chunk_size: int = 64 * 1024,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the object handler.

        Args:
            metadata_file: Name of the per-object YAML sidecar ('' or None disables it)
            overwrite: Allow writing into a pre-existing, non-empty object directory
            chunk_size: Copy buffer size in bytes
            logger: Logger instance (optional)
        """
        self.metadata_file = metadata_file or None
        self.overwrite = overwrite
        self.chunk_size = chunk_size
        self.logger = logger or logging.getLogger('fedora_export.exporters.object_handler')

    def open_object(
        self,
        target_dir: Path,
        info: FedoraObjectInfo,
        datastream_versions: Union[str, DatastreamVersions] = DatastreamVersions.LATEST
    ) -> 'ObjectWriteSession':
        """
        Prepare ``target_dir`` for an object and return its write session.

        ``datastream_versions`` is the version selection the caller reads the
        object with; it decides file naming ('latest' uses the DSID, 'all' the
        version ID).

        Raises:
            OutputError: If the directory cannot be created or already holds files
        """
        target_dir = Path(target_dir)
        try:
            if target_dir.exists():
                if not target_dir.is_dir():
                    raise OutputError(target_dir, "Output path exists and is not a directory")
                if not self.overwrite and any(entry.is_file() for entry in target_dir.iterdir()):
                    raise OutputError(target_dir, "Output directory already contains files")
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(target_dir, f"Failed to create output directory ({e})") from e

        self.logger.debug(f"Writing {info.pid} into {target_dir}")
        return ObjectWriteSession(self, target_dir, info, DatastreamVersions(datastream_versions))


class ObjectWriteSession:
    """Per-object state for one processing pass."""

    def __init__(
        self,
        handler: ObjectHandler,
        target_dir: Path,
        info: FedoraObjectInfo,
        datastream_versions: DatastreamVersions = DatastreamVersions.LATEST
    ):
        self.handler = handler
        self.datastream_versions = datastream_versions
        self.target_dir = target_dir
        self.info = info
        self.logger = handler.logger
        self.result = ObjectExportResult(pid=info.pid, directory=str(target_dir))
        self._used_names: Set[str] = set()
        self._datastreams: Dict[str, Dict[str, Any]] = {}
        if handler.metadata_file:
            self._used_names.add(handler.metadata_file)

    def filename_for(self, datastream: Datastream, version: DatastreamVersion) -> str:
        if self.datastream_versions == DatastreamVersions.ALL:
            base = version.id or datastream.id
        else:
            base = datastream.id or version.id
        return safe_filename(base) + extension_for(version.mime_type)

    def write_datastream(
        self,
        datastream: Datastream,
        version: DatastreamVersion,
        source: ContentSource
    ) -> Path:
        """
        Copy a datastream version's content into the object directory.

        Content is streamed into ``<name>.part`` and renamed on completion.

        Returns:
            Path of the written file

        Raises:
            OutputError: If the file cannot be written or its name is already taken
            ResolutionError: If reading the content fails
        """
        filename = self.filename_for(datastream, version)
        if filename in self._used_names:
            raise OutputError(
                self.target_dir / filename,
                f"Duplicate output file name for {self.info.pid} datastream {datastream.id}"
            )
        self._used_names.add(filename)

        final_path = self.target_dir / filename
        part_path = self.target_dir / (filename + '.part')
        written = 0

        try:
            with open(part_path, 'wb') as out:
                for chunk in source.iter_chunks(self.handler.chunk_size):
                    out.write(chunk)
                    written += len(chunk)
            os.replace(part_path, final_path)
        except OSError as e:
            _discard(part_path)
            raise OutputError(final_path, f"Failed to write datastream {datastream.id} ({e})") from e
        except Exception:
            _discard(part_path)
            raise

        if version.size and version.size > 0 and version.size != written:
            self.logger.warning(
                f"{self.info.pid}/{version.id}: FOXML declares {version.size} bytes, wrote {written}"
            )

        self.result.files.append(filename)
        self.result.datastreams_written += 1
        self.result.bytes_written += written
        self._describe(datastream, version, filename, written)

        self.logger.debug(f"Wrote {final_path} ({written} bytes)")
        return final_path

    def record_reference(self, datastream: Datastream, version: DatastreamVersion) -> None:
        """Record a datastream version in the sidecar without writing its content."""
        self.result.datastreams_referenced += 1
        self._describe(datastream, version, None, None)

    def _describe(
        self,
        datastream: Datastream,
        version: DatastreamVersion,
        filename: Optional[str],
        written: Optional[int]
    ) -> None:
        entry = self._datastreams.setdefault(datastream.id, {
            'id': datastream.id,
            'control_group': datastream.control_group,
            'state': datastream.state,
            'versions': []
        })
        version_entry: Dict[str, Any] = {
            'id': version.id,
            'label': version.label,
            'created': version.created,
            'mime_type': version.mime_type,
            'file': filename,
            'size': written
        }
        if version.format_uri:
            version_entry['format_uri'] = version.format_uri
        if version.digest and version.digest.get('value'):
            version_entry['digest'] = dict(version.digest)
        if version.location_ref:
            version_entry['location'] = {'type': version.location_type, 'ref': version.location_ref}
        entry['versions'].append(version_entry)

    def close(self) -> ObjectExportResult:
        """Write the metadata sidecar (if enabled) and return the object's result."""
        if self.handler.metadata_file:
            path = self.target_dir / self.handler.metadata_file
            document = {
                'pid': self.info.pid,
                'source': self.info.source,
                'properties': dict(self.info.properties),
                'datastreams': list(self._datastreams.values())
            }
            try:
                with open(path, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(document, f, sort_keys=False, allow_unicode=True, default_flow_style=False)
            except OSError as e:
                raise OutputError(path, f"Failed to write object metadata ({e})") from e
            self.result.files.append(self.handler.metadata_file)

        self.logger.info(
            f"Exported {self.info.pid}: {self.result.datastreams_written} datastream file(s), "
            f"{self.result.bytes_written} bytes"
        )
        return self.result


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


__all__ = ['ObjectHandler', 'ObjectWriteSession', 'OutputError', 'extension_for', 'safe_filename']
