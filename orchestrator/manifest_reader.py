"""Lazy reader for the newline-delimited JSON export manifest."""

import json
import logging
from typing import Iterable, Iterator, Optional, Union

from models import UmdmRecord

logger = logging.getLogger('fedora_export.manifest')


class ManifestParseError(Exception):
    """Raised when a manifest line is not a valid UMDM record."""

    def __init__(self, line_number: int, message: str):
        self.line_number = line_number
        super().__init__(f"Manifest line {line_number}: {message}")


def read_manifest(lines: Iterable[Union[str, bytes]], source: Optional[str] = None) -> Iterator[UmdmRecord]:
    """
    Yield one UmdmRecord per manifest line, in order.

    The input is consumed once, line by line; nothing is buffered beyond the
    current line. Blank lines are skipped. Byte lines are decoded as UTF-8
    one at a time, so an undecodable line is reported with its line number.

    Args:
        lines: Manifest lines (a file opened in binary or text mode, or any
            iterable of strings or bytes)
        source: Name of the manifest for log messages

    Yields:
        UmdmRecord instances in manifest order

    Raises:
        ManifestParseError: On the first line that is not a valid UMDM record
    """
    count = 0
    for line_number, line in enumerate(lines, start=1):
        if isinstance(line, bytes):
            try:
                line = line.decode('utf-8')
            except UnicodeDecodeError as e:
                raise ManifestParseError(line_number, f"Invalid UTF-8 ({e.reason} at byte {e.start})") from e

        line = line.strip()
        if not line:
            continue

        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise ManifestParseError(line_number, f"Invalid JSON ({e.msg} at column {e.colno})") from e

        try:
            record = UmdmRecord.from_dict(data)
        except ValueError as e:
            raise ManifestParseError(line_number, str(e)) from e

        count += 1
        yield record

    logger.debug(f"Read {count} UMDM record(s) from {source or 'manifest'}")


__all__ = ['ManifestParseError', 'read_manifest']
