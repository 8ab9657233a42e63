"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict

import yaml

from models import DatastreamVersions, ResolverType

DEFAULT_CONFIG: Dict[str, Any] = {
    'migration': {
        'manifest': None,
        'dry_run': False,
        'report_path': None,
        'progress_bars': True
    },
    'source': {
        'foxml_base_dir': None
    },
    'resolver': {
        'type': ResolverType.NETWORK.value,
        'fedora_host': None,
        'datastream_root': None,
        'url_template': None,
        'username': None,
        'password': None
    },
    'export': {
        'output_directory': './fedora-export',
        'index_file': None,
        'datastream_versions': DatastreamVersions.LATEST.value,
        'object_metadata_file': 'object.yaml',
        'fetch_external_content': True,
        'overwrite': False
    },
    'advanced': {
        'request_timeout': 30,
        'max_retries': 3,
        'retry_backoff_factor': 0.5,
        'verify_ssl': True
    },
    'logging': {
        'level': None,
        'file': None
    }
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        return cls._substitute_env_vars_recursive(config_data)

    @classmethod
    def with_defaults(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of config with every missing setting filled from DEFAULT_CONFIG."""
        merged = copy.deepcopy(DEFAULT_CONFIG)
        for section, values in (config or {}).items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(copy.deepcopy(values))
            else:
                merged[section] = copy.deepcopy(values)
        return merged

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        cls._validate_required_field(config, 'migration.manifest')
        cls._validate_required_field(config, 'export.output_directory')

        output_dir = get_nested(config, 'export.output_directory')
        if os.path.exists(output_dir) and not os.path.isdir(output_dir):
            raise ValueError(f"export.output_directory '{output_dir}' is not a directory")

        resolver_type = get_nested(config, 'resolver.type', ResolverType.NETWORK.value)
        try:
            ResolverType(resolver_type)
        except ValueError:
            raise ValueError(
                f"resolver.type must be one of: {[t.value for t in ResolverType]}"
            )

        if resolver_type == ResolverType.NETWORK.value:
            cls._validate_required_field(config, 'resolver.fedora_host')
            fedora_host = get_nested(config, 'resolver.fedora_host')
            if '://' in fedora_host or '/' in fedora_host:
                raise ValueError(
                    f"resolver.fedora_host must be a host[:port], not a URL: {fedora_host}"
                )
        else:
            cls._validate_required_field(config, 'resolver.datastream_root')
            root = get_nested(config, 'resolver.datastream_root')
            if not os.path.isdir(root):
                raise ValueError(f"resolver.datastream_root '{root}' is not a valid directory")

        url_template = get_nested(config, 'resolver.url_template')
        if url_template:
            for placeholder in ('{host}', '{pid}', '{dsid}'):
                if placeholder not in url_template:
                    raise ValueError(f"resolver.url_template must contain {placeholder}")

        base_dir = get_nested(config, 'source.foxml_base_dir')
        if base_dir and not os.path.isdir(base_dir):
            raise ValueError(f"source.foxml_base_dir '{base_dir}' is not a valid directory")

        versions = get_nested(config, 'export.datastream_versions', DatastreamVersions.LATEST.value)
        try:
            DatastreamVersions(versions)
        except ValueError:
            raise ValueError(
                f"export.datastream_versions must be one of: {[v.value for v in DatastreamVersions]}"
            )

        for field in ('export.fetch_external_content', 'export.overwrite', 'advanced.verify_ssl'):
            value = get_nested(config, field)
            if value is not None and not isinstance(value, bool):
                raise ValueError(f"{field} must be a boolean")

        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        max_retries = get_nested(config, 'advanced.max_retries', 3)
        if not isinstance(max_retries, int) or isinstance(max_retries, bool) or max_retries < 0:
            raise ValueError("advanced.max_retries must be a non-negative integer")

        backoff = get_nested(config, 'advanced.retry_backoff_factor', 0.5)
        if not isinstance(backoff, (int, float)) or isinstance(backoff, bool) or backoff < 0:
            raise ValueError("advanced.retry_backoff_factor must be a non-negative number")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('migration', 'source', 'resolver', 'export', 'logging'):
            if not isinstance(merged.get(section), dict):
                merged[section] = {}

        if getattr(args, 'manifest', None):
            merged['migration']['manifest'] = args.manifest

        if getattr(args, 'dry_run', False):
            merged['migration']['dry_run'] = True

        if getattr(args, 'report', None):
            merged['migration']['report_path'] = args.report

        if getattr(args, 'no_progress', False):
            merged['migration']['progress_bars'] = False

        if getattr(args, 'foxml_base_dir', None):
            merged['source']['foxml_base_dir'] = args.foxml_base_dir

        if getattr(args, 'resolver', None):
            merged['resolver']['type'] = args.resolver

        if getattr(args, 'fedora_host', None):
            merged['resolver']['fedora_host'] = args.fedora_host

        if getattr(args, 'datastream_root', None):
            merged['resolver']['datastream_root'] = args.datastream_root

        if getattr(args, 'output_dir', None):
            merged['export']['output_directory'] = args.output_dir

        if getattr(args, 'versions', None):
            merged['export']['datastream_versions'] = args.versions

        if getattr(args, 'overwrite', False):
            merged['export']['overwrite'] = True

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        verbose = getattr(args, 'verbose', 0)
        if verbose:
            merged['logging']['level'] = 'DEBUG' if verbose >= 2 else 'INFO'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "resolver.fedora_host")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config

    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'get_nested']
