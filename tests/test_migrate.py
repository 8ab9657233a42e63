"""Tests for the command-line entry point and its exit codes."""

import csv

import pytest

from foxml_samples import dc_datastream, datastream_xml, manifest_line, version_xml, write_foxml
from migrate import create_argument_parser, main
from resolvers.legacy_fs_resolver import encode_internal_id


@pytest.fixture
def legacy_setup(tmp_path):
    """A FOXML directory, a legacy datastream store and a manifest for one UMDM with one UMAM."""
    foxml_dir = tmp_path / 'foxml'
    foxml_dir.mkdir()
    store = tmp_path / 'store' / '2010' / '0203'
    store.mkdir(parents=True)

    write_foxml(foxml_dir, 'test_1.xml', 'test:1', [dc_datastream('Parent')])
    write_foxml(foxml_dir, 'test_1a.xml', 'test:1a', [datastream_xml('IMAGE', [
        version_xml('IMAGE.0', mime_type='image/jpeg', location=('INTERNAL_ID', 'test:1a+IMAGE+IMAGE.0'))
    ])])
    (store / encode_internal_id('test:1a+IMAGE+IMAGE.0')).write_bytes(b'jpeg')

    manifest = tmp_path / 'manifest.jsonl'
    manifest.write_text(
        manifest_line('test:1', 'test_1.xml', title='Line1\nLine2', handle='hdl:1', parts=[('test:1a', 'test_1a.xml')]),
        encoding='utf-8'
    )

    config = tmp_path / 'config.yaml'
    config.write_text('logging:\n  level: WARNING\n', encoding='utf-8')

    return {
        'args': [
            '--config', str(config),
            '--manifest', str(manifest),
            '--output-dir', str(tmp_path / 'out'),
            '--resolver', 'legacy_fs',
            '--datastream-root', str(tmp_path / 'store'),
            '--foxml-base-dir', str(foxml_dir),
            '--no-progress',
        ],
        'out': tmp_path / 'out',
        'manifest': manifest,
        'tmp_path': tmp_path,
    }


class TestArgumentParser:

    def test_defaults(self):
        args = create_argument_parser().parse_args([])
        assert args.config is None
        assert args.dry_run is False
        assert args.verbose == 0

    def test_resolver_choices_enforced(self):
        with pytest.raises(SystemExit):
            create_argument_parser().parse_args(['--resolver', 'ftp'])


class TestMain:

    def test_successful_export(self, legacy_setup, capsys):
        report = legacy_setup['tmp_path'] / 'report.json'
        exit_code = main(legacy_setup['args'] + ['--report', str(report)])

        assert exit_code == 0
        with open(legacy_setup['out'] / 'export.csv', newline='', encoding='utf-8') as f:
            rows = list(csv.reader(f))
        assert rows[1:] == [
            ['test:1', '', 'test_1', 'Line1 Line2', 'hdl:1'],
            ['test:1', 'test:1a', 'test_1/test_1a', '', ''],
        ]
        assert (legacy_setup['out'] / 'test_1' / 'test_1a' / 'IMAGE.jpg').read_bytes() == b'jpeg'
        assert report.exists()
        assert 'EXPORT REPORT' in capsys.readouterr().out

    def test_dry_run_writes_nothing(self, legacy_setup, capsys):
        exit_code = main(legacy_setup['args'] + ['--dry-run'])

        assert exit_code == 0
        assert not legacy_setup['out'].exists()
        output = capsys.readouterr().out
        assert 'test:1a -> test_1/test_1a' in output

    def test_export_failure_exit_code(self, legacy_setup):
        (legacy_setup['tmp_path'] / 'foxml' / 'test_1a.xml').unlink()

        assert main(legacy_setup['args']) == 1
        assert (legacy_setup['out'] / 'test_1' / 'DC.xml').exists()

    def test_invalid_utf8_manifest_is_export_failure(self, legacy_setup, capsys):
        manifest = legacy_setup['manifest']
        manifest.write_bytes(manifest.read_bytes() + b'{"pid": "test:\xff2"}\n')

        assert main(legacy_setup['args']) == 1
        captured = capsys.readouterr()
        assert 'EXPORT REPORT' in captured.out
        assert 'Configuration error' not in captured.err
        with open(legacy_setup['out'] / 'export.csv', newline='', encoding='utf-8') as f:
            assert [row[0] for row in csv.reader(f)][1:] == ['test:1', 'test:1']

    def test_missing_fedora_host_is_configuration_error(self, legacy_setup, capsys):
        args = ['--config', legacy_setup['args'][1], '--manifest', str(legacy_setup['manifest']),
                '--resolver', 'network', '--no-progress']

        assert main(args) == 2
        assert 'resolver.fedora_host' in capsys.readouterr().err

    def test_missing_config_file(self, legacy_setup):
        assert main(['--config', str(legacy_setup['tmp_path'] / 'absent.yaml')]) == 2

    def test_missing_manifest(self, legacy_setup):
        args = list(legacy_setup['args'])
        args[3] = str(legacy_setup['tmp_path'] / 'absent.jsonl')
        assert main(args) == 2
