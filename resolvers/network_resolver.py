"""Resolver that reads datastream content from a live repository over HTTP."""

import logging
from typing import Iterator, Optional
from urllib.parse import quote

import requests

from repository_client import RepositoryClient
from .base_resolver import (
    DEFAULT_CHUNK_SIZE,
    BaseIDResolver,
    ContentSource,
    FetchError,
    NotFoundError
)

logger = logging.getLogger('fedora_export.resolver.network')


class ResponseContentSource(ContentSource):
    """Streams the body of an open HTTP response and closes it when done."""

    def __init__(self, response: requests.Response, url: str, internal_id: str, resolver: str):
        self.response = response
        self.url = url
        self.internal_id = internal_id
        self.resolver = resolver
        self.description = url

    def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        try:
            for chunk in self.response.iter_content(chunk_size=chunk_size):
                if chunk:
                    yield chunk
        except requests.exceptions.RequestException as e:
            raise FetchError(
                self.internal_id, self.resolver, f"Read failed for {self.url}: {e}", url=self.url
            ) from e
        finally:
            self.response.close()


class HttpUrlFetcher:
    """Fetches absolute URLs through the repository client."""

    def __init__(self, client: RepositoryClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger('fedora_export.fetcher')

    def fetch(self, url: str, internal_id: Optional[str] = None, resolver: str = 'url') -> ContentSource:
        """
        Open a streaming read of ``url``.

        Args:
            url: Absolute URL
            internal_id: Reference being resolved, used in error reports (defaults to url)
            resolver: Variant name reported on failure

        Returns:
            ResponseContentSource streaming the body

        Raises:
            FetchError: On non-success status or connectivity failure
        """
        reference = internal_id or url
        self.logger.debug(f"Fetching {url}")
        try:
            response = self.client.open_stream(url)
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise FetchError(
                reference, resolver, f"HTTP {status} from {url}", url=url, status_code=status
            ) from e
        except requests.exceptions.RequestException as e:
            raise FetchError(reference, resolver, f"Connection failed for {url}: {e}", url=url) from e

        return ResponseContentSource(response, url, reference, resolver)


class NetworkIDResolver(BaseIDResolver):
    """Resolves internal ids by reading them from a repository host."""

    name = 'network'
    DEFAULT_URL_TEMPLATE = 'http://{host}/fedora/get/{pid}/{dsid}'

    def __init__(
        self,
        fedora_host: str,
        fetcher: HttpUrlFetcher,
        url_template: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the network resolver.

        Args:
            fedora_host: Repository host in host[:port] form
            fetcher: HttpUrlFetcher used for every read
            url_template: Format string with {host}, {pid}, {dsid} and {version} fields
            logger: Logger instance (optional)
        """
        super().__init__(logger)
        if not fedora_host:
            raise ValueError("fedora_host is required for the network resolver")
        self.fedora_host = fedora_host
        self.fetcher = fetcher
        self.url_template = url_template or self.DEFAULT_URL_TEMPLATE

        self.logger.info(f"Initialized NetworkIDResolver for {fedora_host}")

    def build_url(self, internal_id: str) -> str:
        parts = self.split_internal_id(internal_id)
        if parts is None:
            raise NotFoundError(internal_id, self.name, "Malformed internal id")
        pid, dsid, version_id = parts
        return self.url_template.format(
            host=self.fedora_host,
            pid=quote(pid, safe=':'),
            dsid=quote(dsid, safe=''),
            version=quote(version_id or '', safe='.')
        )

    def resolve(self, internal_id: str) -> ContentSource:
        url = self.build_url(internal_id)
        self.logger.debug(f"Resolving {internal_id} -> {url}")
        return self.fetcher.fetch(url, internal_id=internal_id, resolver=self.name)

    def close(self) -> None:
        self.fetcher.client.close()
