"""Tests for the object handler writing datastream files."""

import pytest
import yaml

from exporters import ObjectHandler, OutputError, extension_for, safe_filename
from models import Datastream, DatastreamVersion, FedoraObjectInfo
from resolvers import BytesContentSource, ContentSource, ResolutionError


class FailingSource(ContentSource):
    """Yields some bytes, then fails like a dropped connection."""

    description = 'failing'

    def iter_chunks(self, chunk_size=1024):
        yield b'partial'
        raise ResolutionError('test:1+DS+DS.0', 'network', 'connection reset')


def _info():
    return FedoraObjectInfo(pid='test:1', source='test_1.xml', properties={'state': 'Active'})


class TestFileNaming:
    """MIME extensions and safe names."""

    def test_known_repository_types(self):
        assert extension_for('text/xml') == '.xml'
        assert extension_for('image/tiff') == '.tif'
        assert extension_for('image/jpeg') == '.jpg'
        assert extension_for('IMAGE/JPEG; charset=binary') == '.jpg'

    def test_unknown_or_missing_type(self):
        assert extension_for(None) == ''
        assert extension_for('application/x-not-a-real-type') == ''

    def test_unsafe_characters_replaced(self):
        assert safe_filename('DS/../x y') == 'DS_.._x_y'
        assert safe_filename('') == '_'


class TestObjectHandler:
    """Directory preparation and datastream writing."""

    def test_open_creates_directory(self, tmp_path):
        target = tmp_path / 'test_1' / 'test_1a'
        ObjectHandler().open_object(target, _info())
        assert target.is_dir()

    def test_non_empty_directory_refused(self, tmp_path):
        (tmp_path / 'stale.txt').write_text('old')
        with pytest.raises(OutputError) as excinfo:
            ObjectHandler().open_object(tmp_path, _info())
        assert excinfo.value.path == str(tmp_path)

    def test_non_empty_directory_allowed_with_overwrite(self, tmp_path):
        (tmp_path / 'stale.txt').write_text('old')
        session = ObjectHandler(overwrite=True).open_object(tmp_path, _info())
        assert session.target_dir == tmp_path

    def test_directory_with_only_subdirectories_accepted(self, tmp_path):
        (tmp_path / 'test_1a').mkdir()
        ObjectHandler().open_object(tmp_path, _info())

    def test_file_in_place_of_directory(self, tmp_path):
        target = tmp_path / 'test_1'
        target.write_text('not a directory')
        with pytest.raises(OutputError):
            ObjectHandler().open_object(target, _info())

    def test_write_datastream_streams_to_final_name(self, tmp_path):
        session = ObjectHandler(chunk_size=3).open_object(tmp_path, _info())
        datastream = Datastream(id='DC', control_group='X')
        version = DatastreamVersion(id='DC1.0', mime_type='text/xml', size=11)

        path = session.write_datastream(datastream, version, BytesContentSource(b'<dc>x</dc>\n'))

        assert path == tmp_path / 'DC.xml'
        assert path.read_bytes() == b'<dc>x</dc>\n'
        assert not list(tmp_path.glob('*.part'))
        assert session.result.bytes_written == 11

    def test_all_versions_session_names_files_by_version(self, tmp_path):
        session = ObjectHandler().open_object(tmp_path, _info(), datastream_versions='all')
        datastream = Datastream(id='TEXT', control_group='M')

        for version_id in ('TEXT.0', 'TEXT.1'):
            version = DatastreamVersion(id=version_id, mime_type='text/plain')
            session.write_datastream(datastream, version, BytesContentSource(version_id.encode()))

        assert (tmp_path / 'TEXT.0.txt').read_bytes() == b'TEXT.0'
        assert (tmp_path / 'TEXT.1.txt').read_bytes() == b'TEXT.1'

    def test_duplicate_file_name_rejected(self, tmp_path):
        session = ObjectHandler().open_object(tmp_path, _info())
        version = DatastreamVersion(id='X.0', mime_type='text/plain')

        session.write_datastream(Datastream(id='DS 1'), version, BytesContentSource(b'a'))
        with pytest.raises(OutputError):
            session.write_datastream(Datastream(id='DS/1'), version, BytesContentSource(b'b'))

        assert (tmp_path / 'DS_1.txt').read_bytes() == b'a'

    def test_failed_read_leaves_no_partial_file(self, tmp_path):
        session = ObjectHandler().open_object(tmp_path, _info())

        with pytest.raises(ResolutionError):
            session.write_datastream(Datastream(id='DS'), DatastreamVersion(id='DS.0'), FailingSource())

        assert list(tmp_path.iterdir()) == []

    def test_size_mismatch_logged(self, tmp_path, caplog):
        session = ObjectHandler().open_object(tmp_path, _info())
        version = DatastreamVersion(id='DS.0', mime_type='text/plain', size=100)

        with caplog.at_level('WARNING', logger='fedora_export.exporters.object_handler'):
            session.write_datastream(Datastream(id='DS'), version, BytesContentSource(b'short'))

        assert 'declares 100 bytes' in caplog.text

    def test_close_writes_sidecar(self, tmp_path):
        session = ObjectHandler().open_object(tmp_path, _info())
        session.write_datastream(
            Datastream(id='DC', control_group='X'),
            DatastreamVersion(id='DC1.0', label='Dublin Core', mime_type='text/xml',
                              digest={'type': 'MD5', 'value': 'abc'}),
            BytesContentSource(b'<dc/>')
        )
        session.record_reference(
            Datastream(id='EXT', control_group='E'),
            DatastreamVersion(id='EXT.0', location_type='URL', location_ref='http://example.org/x')
        )

        result = session.close()
        sidecar = yaml.safe_load((tmp_path / 'object.yaml').read_text(encoding='utf-8'))

        assert result.files == ['DC.xml', 'object.yaml']
        assert result.datastreams_referenced == 1
        assert sidecar['pid'] == 'test:1'
        assert [ds['id'] for ds in sidecar['datastreams']] == ['DC', 'EXT']
        dc_version = sidecar['datastreams'][0]['versions'][0]
        assert dc_version['file'] == 'DC.xml'
        assert dc_version['size'] == 5
        assert dc_version['digest'] == {'type': 'MD5', 'value': 'abc'}

    def test_sidecar_disabled(self, tmp_path):
        session = ObjectHandler(metadata_file='').open_object(tmp_path, _info())
        result = session.close()
        assert result.files == []
        assert not (tmp_path / 'object.yaml').exists()

