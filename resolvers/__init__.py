"""Resolvers package for turning FOXML internal references into datastream content."""

from .base_resolver import (
    BaseIDResolver,
    BytesContentSource,
    ContentSource,
    FetchError,
    FileContentSource,
    NotFoundError,
    ResolutionError
)
from .network_resolver import HttpUrlFetcher, NetworkIDResolver, ResponseContentSource
from .legacy_fs_resolver import LegacyFSIDResolver, decode_storage_name, encode_internal_id

from models import ResolverType
from repository_client import RepositoryClient


class ResolverFactory:
    """Factory for creating the configured resolver variant."""

    @staticmethod
    def create_resolver(config: dict, fetcher: HttpUrlFetcher = None, logger=None) -> BaseIDResolver:
        """Create the resolver selected by ``resolver.type``.

        Args:
            config: Configuration dictionary
            fetcher: Shared HttpUrlFetcher (created from config when omitted)
            logger: Logger instance

        Returns:
            BaseIDResolver instance (NetworkIDResolver or LegacyFSIDResolver)

        Raises:
            ValueError: If the resolver type is invalid
        """
        resolver_config = config.get('resolver', {})
        resolver_type = resolver_config.get('type', ResolverType.NETWORK.value)

        if resolver_type == ResolverType.NETWORK.value:
            if fetcher is None:
                fetcher = HttpUrlFetcher(RepositoryClient.from_config(config))
            return NetworkIDResolver(
                resolver_config.get('fedora_host'),
                fetcher,
                url_template=resolver_config.get('url_template'),
                logger=logger
            )
        elif resolver_type == ResolverType.LEGACY_FS.value:
            return LegacyFSIDResolver(resolver_config.get('datastream_root'), logger=logger)
        else:
            raise ValueError(
                f"Invalid resolver type: {resolver_type}. Must be 'network' or 'legacy_fs'."
            )


__all__ = [
    'BaseIDResolver',
    'BytesContentSource',
    'ContentSource',
    'FetchError',
    'FileContentSource',
    'NotFoundError',
    'ResolutionError',
    'HttpUrlFetcher',
    'NetworkIDResolver',
    'ResponseContentSource',
    'LegacyFSIDResolver',
    'decode_storage_name',
    'encode_internal_id',
    'ResolverFactory'
]
