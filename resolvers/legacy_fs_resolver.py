"""Resolver that locates datastream content in a legacy on-disk datastream store."""

import logging
import os
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote, unquote

from .base_resolver import BaseIDResolver, ContentSource, FileContentSource, NotFoundError

AKUBRA_PREFIX = 'info:fedora/'

STYLE_FEDORA2 = 'fedora2'
STYLE_AKUBRA = 'akubra'


def encode_internal_id(internal_id: str, style: str = STYLE_FEDORA2) -> str:
    """
    Encode an internal id as a legacy storage file name.

    Fedora 2 stores ``ns:id+DS+DS.0`` as ``ns_id+DS+DS.0``. Akubra stores it as
    the URL-encoded ``info:fedora/ns:id/DS/DS.0``.
    """
    if style == STYLE_FEDORA2:
        return internal_id.replace(':', '_', 1)
    if style == STYLE_AKUBRA:
        return quote(AKUBRA_PREFIX + internal_id.replace('+', '/'), safe='')
    raise ValueError(f"Unknown storage style: {style}")


def decode_storage_name(name: str) -> str:
    """Inverse of :func:`encode_internal_id` for either storage style."""
    decoded = unquote(name)
    if decoded.startswith(AKUBRA_PREFIX):
        return decoded[len(AKUBRA_PREFIX):].replace('/', '+')
    # Namespaces cannot contain '_', so the first one is the pid separator
    return name.replace('_', ':', 1)


class LegacyFSIDResolver(BaseIDResolver):
    """
    Resolves internal ids against a legacy datastream store.

    Legacy stores spread files across timestamp directories
    (``YYYY/MMDD/HH/mm/<name>``), so the store is walked once and every file
    name is decoded back into its internal id.
    """

    name = 'legacy_fs'

    def __init__(self, datastream_root: str, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.datastream_root = Path(datastream_root)
        if not self.datastream_root.is_dir():
            raise ValueError(f"Datastream root is not a directory: {self.datastream_root}")
        self._index: Optional[Dict[str, Path]] = None

        self.logger.info(f"Initialized LegacyFSIDResolver for {self.datastream_root}")

    def _build_index(self) -> Dict[str, Path]:
        index: Dict[str, Path] = {}
        for dirpath, dirnames, filenames in os.walk(self.datastream_root):
            dirnames.sort()
            for filename in sorted(filenames):
                internal_id = decode_storage_name(filename)
                path = Path(dirpath) / filename
                if internal_id in index:
                    self.logger.warning(
                        f"Duplicate datastream file for {internal_id}: {path} (keeping {index[internal_id]})"
                    )
                    continue
                index[internal_id] = path

        self.logger.info(f"Indexed {len(index)} datastream files under {self.datastream_root}")
        return index

    @property
    def index(self) -> Dict[str, Path]:
        if self._index is None:
            self._index = self._build_index()
        return self._index

    def path_for(self, internal_id: str) -> Path:
        path = self.index.get(internal_id)
        if path is None:
            raise NotFoundError(internal_id, self.name, f"Not present under {self.datastream_root}")
        if not path.is_file():
            raise NotFoundError(internal_id, self.name, f"Indexed file no longer exists: {path}")
        return path

    def resolve(self, internal_id: str) -> ContentSource:
        path = self.path_for(internal_id)
        self.logger.debug(f"Resolved {internal_id} -> {path}")
        return FileContentSource(path, internal_id, resolver=self.name)
