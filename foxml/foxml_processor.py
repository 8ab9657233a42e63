"""
Streaming FOXML object processor.

Reads one object's FOXML serialization with ``lxml.etree.iterparse`` and
drives an object handler: object properties first, then each datastream's
selected versions with their content resolved through the run's
ResolutionContext. Processed elements are cleared as the parse advances, so
memory use does not grow with the size of the document.
"""

import base64
import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from dateutil.parser import isoparse
from dateutil.tz import tzutc
from lxml import etree

from models import (
    Datastream,
    DatastreamVersion,
    DatastreamVersions,
    FedoraObjectInfo,
    ObjectExportResult
)
from repository_client import RepositoryClient
from resolvers import (
    BaseIDResolver,
    BytesContentSource,
    ContentSource,
    FetchError,
    HttpUrlFetcher,
    ResolverFactory
)

FOXML_NS = 'info:fedora/fedora-system:def/foxml#'
LOCAL_FEDORA_SERVER = 'local.fedora.server'


def _foxml(name: str) -> str:
    return f'{{{FOXML_NS}}}{name}'


DIGITAL_OBJECT = _foxml('digitalObject')
OBJECT_PROPERTIES = _foxml('objectProperties')
PROPERTY = _foxml('property')
EXT_PROPERTY = _foxml('extproperty')
DATASTREAM = _foxml('datastream')
DATASTREAM_VERSION = _foxml('datastreamVersion')
CONTENT_DIGEST = _foxml('contentDigest')
CONTENT_LOCATION = _foxml('contentLocation')
XML_CONTENT = _foxml('xmlContent')
BINARY_CONTENT = _foxml('binaryContent')


class FoxmlError(Exception):
    """Base exception for FOXML source problems."""

    def __init__(self, path: Union[str, Path], message: str):
        self.path = str(path)
        super().__init__(f"{message}: {self.path}")


class SourceNotFoundError(FoxmlError):
    """The FOXML source file does not exist."""

    def __init__(self, path: Union[str, Path]):
        super().__init__(path, "FOXML source not found")


class FoxmlParseError(FoxmlError):
    """The FOXML source could not be read or is not a valid FOXML document."""
    pass


@dataclass(frozen=True)
class ResolutionContext:
    """Resolver plus repository host shared by every processor in one run."""

    resolver: BaseIDResolver
    fedora_host: Optional[str] = None
    fetcher: Optional[HttpUrlFetcher] = None

    def rewrite_url(self, url: str) -> str:
        """Point ``local.fedora.server`` placeholder URLs at the configured host."""
        if self.fedora_host:
            return url.replace(LOCAL_FEDORA_SERVER, self.fedora_host)
        return url

    def fetch_url(self, url: str) -> ContentSource:
        target = self.rewrite_url(url)
        if self.fetcher is None:
            raise FetchError(url, 'url', "No HTTP fetcher configured", url=target)
        return self.fetcher.fetch(target, internal_id=url)

    def close(self) -> None:
        self.resolver.close()
        if self.fetcher is not None:
            self.fetcher.client.close()

    @classmethod
    def from_config(cls, config: dict, logger: Optional[logging.Logger] = None) -> 'ResolutionContext':
        """Build the run's context: one HTTP fetcher shared with the configured resolver."""
        fetcher_logger = logger.getChild('fetcher') if logger else None
        resolver_logger = logger.getChild('resolver') if logger else None

        fetcher = HttpUrlFetcher(RepositoryClient.from_config(config), logger=fetcher_logger)
        resolver = ResolverFactory.create_resolver(config, fetcher=fetcher, logger=resolver_logger)
        return cls(
            resolver=resolver,
            fedora_host=config.get('resolver', {}).get('fedora_host'),
            fetcher=fetcher
        )


class FoxmlObjectProcessor:
    """Processes a single FOXML document into an object handler."""

    def __init__(
        self,
        source_path: Union[str, Path],
        context: ResolutionContext,
        datastream_versions: Union[str, DatastreamVersions] = DatastreamVersions.LATEST,
        fetch_external_content: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the processor.

        Args:
            source_path: Path to the FOXML file
            context: Run-wide ResolutionContext
            datastream_versions: 'latest' or 'all'
            fetch_external_content: Fetch E/R datastream content instead of only recording it
            logger: Logger instance (optional)
        """
        self.source_path = Path(source_path)
        self.context = context
        self.datastream_versions = DatastreamVersions(datastream_versions)
        self.fetch_external_content = fetch_external_content
        self.logger = logger or logging.getLogger('fedora_export.foxml')

    def process_object(self, handler, target_dir: Path) -> ObjectExportResult:
        """
        Stream the object's datastreams into ``target_dir`` through ``handler``.

        Args:
            handler: ObjectHandler that materializes the object
            target_dir: Directory for this object's files

        Returns:
            ObjectExportResult from the handler

        Raises:
            SourceNotFoundError: If the FOXML file does not exist
            FoxmlParseError: If the FOXML file cannot be read or parsed
            ResolutionError: If datastream content cannot be resolved
            OutputError: If writing the object's files fails
        """
        try:
            source = open(self.source_path, 'rb')
        except FileNotFoundError as e:
            raise SourceNotFoundError(self.source_path) from e
        except OSError as e:
            raise FoxmlParseError(self.source_path, f"Cannot read FOXML ({e})") from e

        with source:
            try:
                return self._process_stream(source, handler, Path(target_dir))
            except etree.XMLSyntaxError as e:
                raise FoxmlParseError(self.source_path, f"Malformed FOXML ({e})") from e

    def _process_stream(self, stream, handler, target_dir: Path) -> ObjectExportResult:
        info: Optional[FedoraObjectInfo] = None
        session = None
        datastream: Optional[Datastream] = None
        versions: List[DatastreamVersion] = []

        for event, elem in etree.iterparse(stream, events=('start', 'end'), remove_comments=True):
            tag = elem.tag

            if event == 'start':
                if tag == DIGITAL_OBJECT and info is None:
                    info = FedoraObjectInfo(pid=elem.get('PID', ''), source=str(self.source_path))
                elif tag == DATASTREAM:
                    datastream = Datastream(
                        id=elem.get('ID', ''),
                        control_group=elem.get('CONTROL_GROUP', 'M'),
                        state=elem.get('STATE'),
                        versionable=elem.get('VERSIONABLE')
                    )
                    versions = []
                continue

            if info is None:
                continue

            if tag in (PROPERTY, EXT_PROPERTY):
                name = elem.get('NAME', '')
                info.properties[name.rsplit('#', 1)[-1]] = elem.get('VALUE', '')
            elif tag == OBJECT_PROPERTIES:
                session = session or self._open_session(handler, target_dir, info)
                self._release(elem)
            elif tag == DATASTREAM_VERSION:
                versions.append(self._read_version(elem))
                elem.clear()
            elif tag == DATASTREAM and datastream is not None:
                session = session or self._open_session(handler, target_dir, info)
                self._export_datastream(session, info, datastream, versions)
                datastream, versions = None, []
                self._release(elem)

        if info is None:
            raise FoxmlParseError(self.source_path, "No foxml:digitalObject element")

        session = session or self._open_session(handler, target_dir, info)
        return session.close()

    def _open_session(self, handler, target_dir: Path, info: FedoraObjectInfo):
        self.logger.debug(f"Opening {info.pid or '<no pid>'} into {target_dir}")
        return handler.open_object(target_dir, info, self.datastream_versions)

    @staticmethod
    def _release(elem) -> None:
        elem.clear()
        parent = elem.getparent()
        if parent is not None:
            while elem.getprevious() is not None:
                del parent[0]

    def _read_version(self, elem) -> DatastreamVersion:
        version = DatastreamVersion(
            id=elem.get('ID', ''),
            label=elem.get('LABEL'),
            created=elem.get('CREATED'),
            mime_type=elem.get('MIMETYPE'),
            size=_int_or_none(elem.get('SIZE')),
            format_uri=elem.get('FORMAT_URI')
        )

        for child in elem:
            if child.tag == CONTENT_DIGEST:
                version.digest = {'type': child.get('TYPE'), 'value': child.get('DIGEST')}
            elif child.tag == CONTENT_LOCATION:
                version.location_type = child.get('TYPE')
                version.location_ref = child.get('REF')
            elif child.tag == XML_CONTENT:
                version.inline_content = self._serialize_xml_content(child)
            elif child.tag == BINARY_CONTENT:
                try:
                    version.inline_content = base64.b64decode(''.join(child.itertext()))
                except ValueError as e:
                    raise FoxmlParseError(
                        self.source_path, f"Invalid binaryContent in version {version.id} ({e})"
                    ) from e

        return version

    @staticmethod
    def _serialize_xml_content(container) -> bytes:
        elements = [child for child in container if isinstance(child.tag, str)]
        if not elements:
            return (container.text or '').strip().encode('utf-8')

        chunks = []
        for element in elements:
            standalone = copy.deepcopy(element)
            etree.cleanup_namespaces(standalone)
            chunks.append(etree.tostring(standalone, encoding='UTF-8', with_tail=False))
        return b'\n'.join(chunks)

    def _select_versions(self, versions: List[DatastreamVersion]) -> List[DatastreamVersion]:
        if self.datastream_versions == DatastreamVersions.ALL or len(versions) <= 1:
            return list(versions)

        # Newest CREATED wins; ties and undated versions fall back to document order
        ranked = max(
            enumerate(versions),
            key=lambda item: (self._created_timestamp(item[1]), item[0])
        )
        return [ranked[1]]

    def _created_timestamp(self, version: DatastreamVersion) -> float:
        if not version.created:
            return float('-inf')
        try:
            created = isoparse(version.created)
        except (ValueError, OverflowError):
            self.logger.warning(
                f"Unparseable CREATED date '{version.created}' on version {version.id} in {self.source_path}"
            )
            return float('-inf')
        if created.tzinfo is None:
            created = created.replace(tzinfo=tzutc())
        return created.timestamp()

    def _export_datastream(
        self,
        session,
        info: FedoraObjectInfo,
        datastream: Datastream,
        versions: List[DatastreamVersion]
    ) -> None:
        for version in self._select_versions(versions):
            if datastream.is_external and not self.fetch_external_content:
                session.record_reference(datastream, version)
                continue

            if not version.has_content:
                self.logger.warning(
                    f"Datastream version {version.id} of {info.pid} has no content in {self.source_path}"
                )
                session.record_reference(datastream, version)
                continue

            source = self._open_content(info, version)
            session.write_datastream(datastream, version, source)

    def _open_content(self, info: FedoraObjectInfo, version: DatastreamVersion) -> ContentSource:
        if version.inline_content is not None:
            return BytesContentSource(version.inline_content, description=f"{info.pid}/{version.id}")

        location_type = (version.location_type or '').upper()
        if location_type == 'INTERNAL_ID':
            return self.context.resolver.resolve(version.location_ref)
        if location_type == 'URL':
            return self.context.fetch_url(version.location_ref)

        raise FoxmlParseError(
            self.source_path,
            f"Unsupported contentLocation TYPE '{version.location_type}' on version {version.id}"
        )


def _int_or_none(value: Optional[str]) -> Optional[int]:
    if value is None or value == '':
        return None
    try:
        return int(value)
    except ValueError:
        return None
