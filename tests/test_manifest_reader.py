"""Tests for the JSON-lines manifest reader."""

import io

import pytest

from orchestrator.manifest_reader import ManifestParseError, read_manifest


class TestReadManifest:
    """Manifest parsing and laziness."""

    def test_records_yielded_in_order(self):
        manifest = io.StringIO(
            '{"pid": "test:1", "foxml": "a.xml", "hasPart": [{"pid": "test:1a", "foxml": "b.xml"}]}\n'
            '{"pid": "test:2", "foxml": "c.xml"}\n'
        )

        records = list(read_manifest(manifest))

        assert [r.pid for r in records] == ['test:1', 'test:2']
        assert records[0].has_part[0].pid == 'test:1a'
        assert records[1].has_part == ()

    def test_blank_lines_skipped(self):
        lines = ['\n', '{"pid": "test:1", "foxml": "a.xml"}\n', '   \n', '{"pid": "test:2", "foxml": "b.xml"}']
        assert [r.pid for r in read_manifest(lines)] == ['test:1', 'test:2']

    def test_invalid_json_reports_line_number(self):
        lines = ['{"pid": "test:1", "foxml": "a.xml"}', '{not json']

        with pytest.raises(ManifestParseError) as excinfo:
            list(read_manifest(lines))

        assert excinfo.value.line_number == 2
        assert 'line 2' in str(excinfo.value)

    def test_byte_lines_decoded_one_at_a_time(self):
        manifest = io.BytesIO(
            '{"pid": "test:1", "foxml": "café.xml"}\n'.encode('utf-8') + b'{"pid": "test:\xff2"}\n'
        )
        records = read_manifest(manifest)

        assert next(records).foxml == 'café.xml'
        with pytest.raises(ManifestParseError) as excinfo:
            next(records)
        assert excinfo.value.line_number == 2
        assert 'UTF-8' in str(excinfo.value)

    def test_wrong_shape_reported(self):
        with pytest.raises(ManifestParseError) as excinfo:
            list(read_manifest(['["test:1"]']))
        assert excinfo.value.line_number == 1
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_reading_is_lazy(self):
        """Records before a bad line are delivered before the error is raised."""
        records = read_manifest(['{"pid": "test:1", "foxml": "a.xml"}', 'garbage'])

        first = next(records)
        assert first.pid == 'test:1'
        with pytest.raises(ManifestParseError):
            next(records)

    def test_title_line_breaks_preserved_in_record(self):
        record = next(read_manifest(['{"pid": "t:1", "foxml": "a.xml", "title": "Line1\\nLine2"}']))
        assert record.title == 'Line1\nLine2'
