"""Export index writers recording what was exported and where."""

import csv
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from models import ExportLayout, UmamRecord, UmdmRecord

INDEX_HEADER = ('umdm', 'umam', 'location', 'title', 'handle')

LINE_BREAKS = re.compile(r'\s*[\r\n]+\s*')


def normalize_title(title: Optional[str]) -> str:
    """Collapse embedded line breaks so one record stays on one physical line."""
    if not title:
        return ''
    return LINE_BREAKS.sub(' ', title)


class ExportWriter(ABC):
    """
    Interface for writing the export index.

    Implementations flush every row as it is recorded so a failed run leaves
    an index describing exactly the rows emitted before the failure.
    """

    @abstractmethod
    def record_parent(self, umdm: UmdmRecord) -> None:
        pass

    @abstractmethod
    def record_child(self, umdm: UmdmRecord, umam: UmamRecord) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self) -> 'ExportWriter':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class CSVExportWriter(ExportWriter):
    """ExportWriter producing ``export.csv``."""

    def __init__(self, csv_output_file: Union[str, Path], logger: Optional[logging.Logger] = None):
        self.path = Path(csv_output_file)
        self.logger = logger or logging.getLogger('fedora_export.exporters.export_writer')

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, 'w', encoding='utf-8', newline='')
        self._writer = csv.writer(self._file)
        self.rows_written = 0

        self._write_row(INDEX_HEADER)
        self.logger.info(f"Writing export index to {self.path}")

    def _write_row(self, row) -> None:
        if self._file is None:
            raise ValueError(f"Export index {self.path} is closed")
        self._writer.writerow(row)
        self._file.flush()

    def record_parent(self, umdm: UmdmRecord) -> None:
        self._write_row((
            umdm.pid,
            '',
            ExportLayout.umdm_location(umdm),
            normalize_title(umdm.title),
            umdm.handle or ''
        ))
        self.rows_written += 1

    def record_child(self, umdm: UmdmRecord, umam: UmamRecord) -> None:
        self._write_row((
            umdm.pid,
            umam.pid,
            ExportLayout.umam_location(umdm, umam),
            '',
            ''
        ))
        self.rows_written += 1

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self.logger.debug(f"Closed export index {self.path} ({self.rows_written} rows)")


__all__ = ['ExportWriter', 'CSVExportWriter', 'INDEX_HEADER', 'normalize_title']
