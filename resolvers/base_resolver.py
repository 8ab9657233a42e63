"""Abstract resolver interface, byte sources and resolution errors."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Optional

DEFAULT_CHUNK_SIZE = 64 * 1024


class ResolutionError(Exception):
    """Base exception for failures resolving an internal datastream reference."""

    def __init__(self, internal_id: str, resolver: str, message: str):
        self.internal_id = internal_id
        self.resolver = resolver
        super().__init__(f"[{resolver}] {internal_id}: {message}")


class NotFoundError(ResolutionError):
    """The internal reference does not map to any available content."""
    pass


class FetchError(ResolutionError):
    """A network read failed or returned a non-success status."""

    def __init__(
        self,
        internal_id: str,
        resolver: str,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        self.url = url
        self.status_code = status_code
        super().__init__(internal_id, resolver, message)


class ContentSource(ABC):
    """A readable, single-use stream of datastream bytes."""

    description: str = ''

    @abstractmethod
    def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the content in chunks of at most ``chunk_size`` bytes."""
        pass

    def read(self) -> bytes:
        return b''.join(self.iter_chunks())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.description!r})"


class BytesContentSource(ContentSource):
    """Content already held in memory (inline XML or base64 content)."""

    def __init__(self, data: bytes, description: str = 'inline'):
        self.data = data
        self.description = description

    def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        for offset in range(0, len(self.data), chunk_size):
            yield self.data[offset:offset + chunk_size]


class FileContentSource(ContentSource):
    """Content read lazily from a local file."""

    def __init__(self, path: Path, internal_id: str, resolver: str = 'legacy_fs'):
        self.path = Path(path)
        self.internal_id = internal_id
        self.resolver = resolver
        self.description = str(self.path)

    def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        try:
            with open(self.path, 'rb') as f:
                while True:
                    chunk = f.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except FileNotFoundError as e:
            raise NotFoundError(self.internal_id, self.resolver, f"File vanished: {self.path}") from e
        except OSError as e:
            raise ResolutionError(
                self.internal_id, self.resolver, f"Failed to read {self.path}: {e}"
            ) from e


class BaseIDResolver(ABC):
    """Resolves FOXML internal ids (``pid+DSID+DSID.n``) to datastream content."""

    name: str = 'base'

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(f'fedora_export.resolver.{self.name}')

    @abstractmethod
    def resolve(self, internal_id: str) -> ContentSource:
        """
        Resolve an internal id to its content.

        Args:
            internal_id: Internal datastream version id from a FOXML contentLocation

        Returns:
            ContentSource for the referenced bytes

        Raises:
            NotFoundError: If the id cannot be resolved
            FetchError: If the content exists remotely but could not be read
        """
        pass

    def close(self) -> None:
        """Release any resources held by the resolver."""
        pass

    @staticmethod
    def split_internal_id(internal_id: str):
        """
        Split ``pid+DSID+DSID.n`` into its parts.

        Returns:
            Tuple of (pid, dsid, version_id); version_id may be None
        """
        parts = internal_id.split('+')
        if len(parts) < 2 or not all(parts):
            return None
        pid, dsid = parts[0], parts[1]
        version_id = parts[2] if len(parts) > 2 else None
        return pid, dsid, version_id
