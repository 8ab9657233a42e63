"""Tests for the legacy datastream store resolver."""

import shutil
import tempfile
import unittest
from pathlib import Path

from resolvers import LegacyFSIDResolver, NotFoundError, ResolutionError
from resolvers.legacy_fs_resolver import decode_storage_name, encode_internal_id


class TestStorageNames(unittest.TestCase):

    def test_fedora2_encoding(self):
        self.assertEqual(encode_internal_id('test:1+DS1+DS1.0'), 'test_1+DS1+DS1.0')

    def test_fedora2_decoding_keeps_later_underscores(self):
        self.assertEqual(decode_storage_name('umd_123+IMAGE_1+IMAGE_1.0'), 'umd:123+IMAGE_1+IMAGE_1.0')

    def test_akubra_encoding(self):
        self.assertEqual(
            encode_internal_id('test:1+DS1+DS1.0', style='akubra'),
            'info%3Afedora%2Ftest%3A1%2FDS1%2FDS1.0'
        )

    def test_decode_inverts_encode(self):
        for internal_id in ('test:1+DS1+DS1.0', 'umd:9+THUMB_2+THUMB_2.3'):
            for style in ('fedora2', 'akubra'):
                self.assertEqual(decode_storage_name(encode_internal_id(internal_id, style)), internal_id)

    def test_unknown_style_rejected(self):
        with self.assertRaises(ValueError):
            encode_internal_id('test:1+DS+DS.0', style='flat')


class TestLegacyFSIDResolver(unittest.TestCase):

    def setUp(self):
        self.root = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.root)

    def _store(self, relative: str, data: bytes) -> Path:
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    def test_resolves_fedora2_names_in_timestamp_directories(self):
        self._store('2008/0131/14/05/test_1+IMAGE+IMAGE.0', b'tiff bytes')

        resolver = LegacyFSIDResolver(str(self.root))
        source = resolver.resolve('test:1+IMAGE+IMAGE.0')

        self.assertEqual(source.read(), b'tiff bytes')

    def test_resolves_akubra_names(self):
        self._store('ab/' + encode_internal_id('test:2+DS+DS.1', 'akubra'), b'akubra')
        resolver = LegacyFSIDResolver(str(self.root))
        self.assertEqual(resolver.resolve('test:2+DS+DS.1').read(), b'akubra')

    def test_unknown_id_raises_not_found(self):
        resolver = LegacyFSIDResolver(str(self.root))
        with self.assertRaises(NotFoundError) as ctx:
            resolver.resolve('test:9+DS+DS.0')
        self.assertEqual(ctx.exception.internal_id, 'test:9+DS+DS.0')
        self.assertEqual(ctx.exception.resolver, 'legacy_fs')
        self.assertIsInstance(ctx.exception, ResolutionError)

    def test_root_must_be_directory(self):
        with self.assertRaises(ValueError):
            LegacyFSIDResolver(str(self.root / 'missing'))

    def test_index_built_lazily_once(self):
        resolver = LegacyFSIDResolver(str(self.root))
        self._store('a/test_1+DS+DS.0', b'late file')

        self.assertEqual(resolver.resolve('test:1+DS+DS.0').read(), b'late file')

        self._store('b/test_1+DS2+DS2.0', b'after index')
        with self.assertRaises(NotFoundError):
            resolver.resolve('test:1+DS2+DS2.0')

    def test_duplicate_files_keep_first_in_sorted_order(self):
        self._store('2001/test_1+DS+DS.0', b'first')
        self._store('2002/test_1+DS+DS.0', b'second')

        resolver = LegacyFSIDResolver(str(self.root))
        with self.assertLogs('fedora_export.resolver.legacy_fs', level='WARNING') as logs:
            data = resolver.resolve('test:1+DS+DS.0').read()

        self.assertEqual(data, b'first')
        self.assertTrue(any('Duplicate' in message for message in logs.output))

    def test_file_removed_after_indexing_is_not_found(self):
        path = self._store('x/test_1+DS+DS.0', b'gone soon')
        resolver = LegacyFSIDResolver(str(self.root))
        self.assertIn('test:1+DS+DS.0', resolver.index)

        path.unlink()
        with self.assertRaises(NotFoundError):
            resolver.resolve('test:1+DS+DS.0')


if __name__ == '__main__':
    unittest.main()
