"""Data models for the Fedora 2 UMDM/UMAM export pipeline."""

import logging
import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger('fedora_export')


class ResolverType(Enum):
    """Datastream resolver variants selectable by configuration."""
    NETWORK = "network"
    LEGACY_FS = "legacy_fs"


class DatastreamVersions(Enum):
    """Which datastream versions are exported for each datastream."""
    LATEST = "latest"
    ALL = "all"


class DirectoryCollisionError(Exception):
    """Raised when two objects in one run map to the same output directory."""

    def __init__(self, location: str, pid: str, claimed_by: str):
        self.location = location
        self.pid = pid
        self.claimed_by = claimed_by
        super().__init__(
            f"Output directory '{location}' for {pid} is already used by {claimed_by}"
        )


def directory_name(pid: str) -> str:
    """Return the filesystem-safe directory name for a persistent identifier."""
    return pid.replace(':', '_')


@dataclass(frozen=True)
class UmamRecord:
    """A child member record listed in a UMDM's ``hasPart`` sequence."""

    pid: str
    foxml: str

    @property
    def directory_name(self) -> str:
        return directory_name(self.pid)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UmamRecord':
        """Build a UMAM record from a manifest dictionary, ignoring unknown keys."""
        return cls(pid=_required_str(data, 'pid'), foxml=_required_str(data, 'foxml'))


@dataclass(frozen=True)
class UmdmRecord:
    """A parent descriptive record: one line of the export manifest."""

    pid: str
    foxml: str
    title: str = ''
    handle: str = ''
    has_part: Tuple[UmamRecord, ...] = ()

    @property
    def directory_name(self) -> str:
        return directory_name(self.pid)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UmdmRecord':
        """
        Build a UMDM record from a decoded manifest line.

        Args:
            data: Decoded JSON object

        Returns:
            UmdmRecord with its children in manifest order

        Raises:
            ValueError: If the object is missing required fields or has the wrong shape
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        parts = data.get('hasPart') or []
        if not isinstance(parts, list):
            raise ValueError("'hasPart' must be a list")

        children = []
        for index, part in enumerate(parts):
            if not isinstance(part, dict):
                raise ValueError(f"'hasPart[{index}]' must be a JSON object")
            children.append(UmamRecord.from_dict(part))

        return cls(
            pid=_required_str(data, 'pid'),
            foxml=_required_str(data, 'foxml'),
            title=_optional_str(data, 'title'),
            handle=_optional_str(data, 'handle'),
            has_part=tuple(children)
        )


def _required_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"Field '{key}' must be a non-empty string")
    return value


def _optional_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValueError(f"Field '{key}' must be a string")
    return value


class ExportLayout:
    """
    Directory layout policy for one export run.

    UMDM objects live in ``<target>/<umdm dir>`` and UMAM objects in
    ``<target>/<umdm dir>/<umam dir>``. Every location can be claimed once
    per run.
    """

    def __init__(self, target_dir: Path):
        self.target_dir = Path(target_dir)
        self._claimed: Dict[str, str] = {}

    @staticmethod
    def umdm_location(umdm: UmdmRecord) -> str:
        return umdm.directory_name

    @staticmethod
    def umam_location(umdm: UmdmRecord, umam: UmamRecord) -> str:
        return posixpath.join(umdm.directory_name, umam.directory_name)

    def path_for(self, location: str) -> Path:
        return self.target_dir.joinpath(*location.split('/'))

    def claim(self, location: str, pid: str) -> Path:
        """
        Reserve a location for an object and return its absolute path.

        Raises:
            DirectoryCollisionError: If the location was already claimed in this run
        """
        owner = self._claimed.get(location)
        if owner is not None:
            raise DirectoryCollisionError(location, pid, owner)
        self._claimed[location] = pid
        return self.path_for(location)


@dataclass
class FedoraObjectInfo:
    """Object-level information read from a FOXML document."""

    pid: str
    source: str
    properties: Dict[str, str] = field(default_factory=dict)

    @property
    def state(self) -> Optional[str]:
        return self.properties.get('state')

    @property
    def label(self) -> Optional[str]:
        return self.properties.get('label')


@dataclass
class Datastream:
    """A FOXML datastream header (its versions are streamed separately)."""

    id: str
    control_group: str = 'M'
    state: Optional[str] = None
    versionable: Optional[str] = None

    @property
    def is_external(self) -> bool:
        """External and redirect datastreams point at content outside the repository."""
        return self.control_group in ('E', 'R')


@dataclass
class DatastreamVersion:
    """One version of a datastream together with the location of its content."""

    id: str
    label: Optional[str] = None
    created: Optional[str] = None
    mime_type: Optional[str] = None
    size: Optional[int] = None
    format_uri: Optional[str] = None
    digest: Optional[Dict[str, str]] = None
    location_type: Optional[str] = None
    location_ref: Optional[str] = None
    inline_content: Optional[bytes] = None

    @property
    def has_content(self) -> bool:
        return self.inline_content is not None or bool(self.location_ref)


@dataclass
class ObjectExportResult:
    """Outcome of exporting a single UMDM or UMAM object."""

    pid: str
    directory: str
    files: List[str] = field(default_factory=list)
    datastreams_written: int = 0
    datastreams_referenced: int = 0
    bytes_written: int = 0


@dataclass
class ExportStats:
    """Aggregated statistics for one export run."""

    umdm_count: int = 0
    umam_count: int = 0
    datastreams_written: int = 0
    datastreams_referenced: int = 0
    bytes_written: int = 0
    started_at: Optional[str] = None
    duration_seconds: float = 0.0
    failed_pid: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.started_at is None:
            self.started_at = datetime.now().isoformat()

    @property
    def objects_exported(self) -> int:
        return self.umdm_count + self.umam_count

    def add_object(self, result: ObjectExportResult) -> None:
        self.datastreams_written += result.datastreams_written
        self.datastreams_referenced += result.datastreams_referenced
        self.bytes_written += result.bytes_written

    def to_dict(self) -> Dict[str, Any]:
        return {
            'umdm_count': self.umdm_count,
            'umam_count': self.umam_count,
            'objects_exported': self.objects_exported,
            'datastreams_written': self.datastreams_written,
            'datastreams_referenced': self.datastreams_referenced,
            'bytes_written': self.bytes_written,
            'started_at': self.started_at,
            'duration_seconds': self.duration_seconds,
            'failed_pid': self.failed_pid,
            'error': self.error
        }


__all__ = [
    'ResolverType',
    'DatastreamVersions',
    'DirectoryCollisionError',
    'directory_name',
    'UmamRecord',
    'UmdmRecord',
    'ExportLayout',
    'FedoraObjectInfo',
    'Datastream',
    'DatastreamVersion',
    'ObjectExportResult',
    'ExportStats'
]
