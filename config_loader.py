"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_FILES = ('vault-export.yaml', 'vault-export.yml')

LINK_STYLES = ('shortest', 'relative')

DEFAULT_CONFIG: Dict[str, Any] = {
    'vault': {
        'root': '.',
        'attachments_directory': '_attachments',
        'document_extension': '.md',
        'ignore_directories': ['.obsidian', '.git', '.trash'],
    },
    'export': {
        'output_directory': None,
        'attachments_directory': 'attachments',
        'references_directory': 'references',
        'hash_length': 8,
        'diagram_extension': '.excalidraw',
        'diagram_raster_suffix': '.dark.png',
        'link_style': 'shortest',
        'progress_bars': True,
        'report_path': None,
    },
    'logging': {
        'level': None,
        'file': None,
    },
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Without an explicit path the first existing default file is used; when
        none exists the built-in defaults are returned.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary merged over the defaults

        Raises:
            FileNotFoundError: If an explicit config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if config_path is None:
            config_path = next(
                (candidate for candidate in DEFAULT_CONFIG_FILES if os.path.exists(candidate)),
                None
            )
            if config_path is None:
                return copy.deepcopy(DEFAULT_CONFIG)

        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            config_data = {}

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        # Substitute environment variables recursively
        config_data = cls._substitute_env_vars_recursive(config_data)

        return _deep_merge(DEFAULT_CONFIG, config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        cls._validate_required_field(config, 'vault.root')
        vault_root = get_nested(config, 'vault.root')
        if not os.path.isdir(vault_root):
            raise ValueError(f"vault.root '{vault_root}' is not a valid directory")

        document_extension = get_nested(config, 'vault.document_extension', '.md')
        if not isinstance(document_extension, str) or not document_extension.startswith('.') \
                or len(document_extension) < 2:
            raise ValueError("vault.document_extension must be an extension starting with '.'")

        ignore_directories = get_nested(config, 'vault.ignore_directories', [])
        if not isinstance(ignore_directories, list):
            raise ValueError("vault.ignore_directories must be a list")

        attachments_directory = get_nested(config, 'vault.attachments_directory')
        if attachments_directory is not None:
            if not isinstance(attachments_directory, str) or os.path.isabs(attachments_directory):
                raise ValueError("vault.attachments_directory must be a path relative to vault.root")
            cls._check_unsubstituted(attachments_directory, 'vault.attachments_directory')

        for field in ('export.attachments_directory', 'export.references_directory'):
            cls._validate_required_field(config, field)
            cls._validate_directory_name(get_nested(config, field), field)

        if get_nested(config, 'export.attachments_directory') == \
                get_nested(config, 'export.references_directory'):
            raise ValueError(
                "export.attachments_directory and export.references_directory must differ"
            )

        hash_length = get_nested(config, 'export.hash_length', 8)
        if isinstance(hash_length, bool) or not isinstance(hash_length, int) \
                or not 4 <= hash_length <= 64:
            raise ValueError("export.hash_length must be an integer between 4 and 64")

        link_style = get_nested(config, 'export.link_style', 'shortest')
        if link_style not in LINK_STYLES:
            raise ValueError(f"export.link_style must be one of: {list(LINK_STYLES)}")

        for field in ('export.diagram_extension', 'export.diagram_raster_suffix'):
            value = get_nested(config, field)
            if value is not None and (not isinstance(value, str) or not value.startswith('.')):
                raise ValueError(f"{field} must be an extension starting with '.'")

        progress_bars = get_nested(config, 'export.progress_bars', True)
        if not isinstance(progress_bars, bool):
            raise ValueError("export.progress_bars must be a boolean")

        output_dir = get_nested(config, 'export.output_directory')
        if output_dir:
            cls._check_unsubstituted(output_dir, 'export.output_directory')
            if os.path.exists(output_dir) and not os.path.isdir(output_dir):
                raise ValueError(f"export.output_directory '{output_dir}' is not a directory")

        level = get_nested(config, 'logging.level')
        if level is not None and str(level).upper() not in {
            'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'
        }:
            raise ValueError(f"logging.level '{level}' is not a valid log level")

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

        # Ensure nested dictionaries exist
        for section in ('vault', 'export', 'logging'):
            if section not in merged:
                merged[section] = {}

        if getattr(args, 'vault', None):
            merged['vault']['root'] = args.vault

        if getattr(args, 'attachments_dir', None):
            merged['vault']['attachments_directory'] = args.attachments_dir

        if getattr(args, 'output_dir', None):
            merged['export']['output_directory'] = args.output_dir

        if getattr(args, 'link_style', None):
            merged['export']['link_style'] = args.link_style

        if getattr(args, 'report', None):
            merged['export']['report_path'] = args.report

        if getattr(args, 'no_progress', False):
            merged['export']['progress_bars'] = False

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

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
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @classmethod
    def _validate_required_field(cls, config: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        if isinstance(value, str):
            cls._check_unsubstituted(value, field)

    @classmethod
    def _check_unsubstituted(cls, value: str, field: str) -> None:
        """Reject values that still carry a ${VAR} reference."""
        if '${' not in value:
            return
        match = cls.ENV_VAR_PATTERN.search(value)
        var_name = match.group(1) if match else value
        raise ValueError(
            f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
            f"Please set the {var_name} environment variable or provide a value in config file."
        )

    @staticmethod
    def _validate_directory_name(value: Any, field: str) -> None:
        """Output subdirectories are single path components."""
        if not isinstance(value, str) or value in ('.', '..') \
                or '/' in value or '\\' in value:
            raise ValueError(f"{field} must be a single directory name, got {value!r}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base`` section by section."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "vault.root")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'LINK_STYLES', 'get_nested']
