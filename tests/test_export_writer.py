"""Tests for the export index writer."""

import csv
import shutil
import tempfile
import unittest
from pathlib import Path

from exporters import CSVExportWriter, INDEX_HEADER, normalize_title
from models import UmamRecord, UmdmRecord


class TestNormalizeTitle(unittest.TestCase):

    def test_line_breaks_become_single_space(self):
        self.assertEqual(normalize_title('Line1\nLine2'), 'Line1 Line2')
        self.assertEqual(normalize_title('Line1 \r\n\r\n  Line2'), 'Line1 Line2')

    def test_missing_title(self):
        self.assertEqual(normalize_title(None), '')
        self.assertEqual(normalize_title(''), '')

    def test_other_whitespace_untouched(self):
        self.assertEqual(normalize_title('A  title\twith tabs'), 'A  title\twith tabs')


class TestCSVExportWriter(unittest.TestCase):

    def setUp(self):
        self.workdir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.workdir)
        self.path = self.workdir / 'export.csv'
        self.umdm = UmdmRecord(pid='test:1', foxml='a.xml', title='Line1\nLine2', handle='hdl:1',
                               has_part=(UmamRecord(pid='test:1a', foxml='b.xml'),))

    def _rows(self):
        with open(self.path, newline='', encoding='utf-8') as f:
            return list(csv.reader(f))

    def test_header_written_on_open(self):
        with CSVExportWriter(self.path):
            pass
        self.assertEqual(self._rows(), [list(INDEX_HEADER)])

    def test_parent_and_child_rows(self):
        with CSVExportWriter(self.path) as writer:
            writer.record_parent(self.umdm)
            writer.record_child(self.umdm, self.umdm.has_part[0])

        self.assertEqual(self._rows(), [
            ['umdm', 'umam', 'location', 'title', 'handle'],
            ['test:1', '', 'test_1', 'Line1 Line2', 'hdl:1'],
            ['test:1', 'test:1a', 'test_1/test_1a', '', '']
        ])

    def test_each_record_is_one_physical_line(self):
        with CSVExportWriter(self.path) as writer:
            writer.record_parent(self.umdm)

        lines = self.path.read_text(encoding='utf-8').splitlines()
        self.assertEqual(lines[1], 'test:1,,test_1,Line1 Line2,hdl:1')

    def test_rows_flushed_before_close(self):
        writer = CSVExportWriter(self.path)
        self.addCleanup(writer.close)

        writer.record_parent(self.umdm)

        self.assertEqual(len(self._rows()), 2)
        self.assertEqual(writer.rows_written, 1)

    def test_titles_with_commas_are_quoted(self):
        umdm = UmdmRecord(pid='test:2', foxml='c.xml', title='Maps, charts')
        with CSVExportWriter(self.path) as writer:
            writer.record_parent(umdm)
        self.assertEqual(self._rows()[1][3], 'Maps, charts')

    def test_write_after_close_rejected(self):
        writer = CSVExportWriter(self.path)
        writer.close()
        with self.assertRaises(ValueError):
            writer.record_parent(self.umdm)

    def test_parent_directory_created(self):
        path = self.workdir / 'nested' / 'index.csv'
        with CSVExportWriter(path):
            pass
        self.assertTrue(path.exists())


if __name__ == '__main__':
    unittest.main()
