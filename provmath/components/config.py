"""
Configuration management for provmath.

This module provides functionality for managing configuration,
including loading from environment variables, files and default values.
"""

import os
import json
import logging
from typing import Dict, List, Optional, Any
from copy import deepcopy
import yaml

from provmath.errors import InvalidParameterError, MalformedInputError

# Set up logging
logger = logging.getLogger(__name__)

LOG_LEVELS = ('DEBUG', 'INFO', 'WARN', 'WARNING', 'ERROR', 'CRITICAL')


def to_int(value: Any) -> Optional[int]:
    """
    Convert a value to an integer.

    Args:
        value: Value to convert

    Returns:
        Integer value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def to_float(value: Any) -> Optional[float]:
    """
    Convert a value to a float.

    Args:
        value: Value to convert

    Returns:
        Float value, or None if conversion failed
    """
    if value is None:
        return None

    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def to_bool(value: Any) -> Optional[bool]:
    """
    Convert a value to a boolean.

    Args:
        value: Value to convert

    Returns:
        Boolean value, or None if conversion failed
    """
    if value is None:
        return None

    if isinstance(value, bool):
        return value

    if isinstance(value, (int, float)):
        return bool(value)

    if isinstance(value, str):
        value = value.lower().strip()
        if value in ('true', 'yes', 'y', '1', 't'):
            return True
        if value in ('false', 'no', 'n', '0', 'f'):
            return False

    return None


def to_list(value: Any, separator: str = ',') -> Optional[List[str]]:
    """
    Convert a value to a list.

    Args:
        value: Value to convert
        separator: Separator for string values

    Returns:
        List value, or None if conversion failed
    """
    if value is None:
        return None

    if isinstance(value, list):
        return value

    if isinstance(value, str):
        return [item.strip() for item in value.split(separator) if item.strip()]

    return None


def _env(name: str, current: Any, convert=None) -> Any:
    """Value of an environment variable, converted, or the current value."""
    if name not in os.environ:
        return current
    value = os.environ[name] if convert is None else convert(os.environ[name])
    if value is None:
        logger.warning(f"Ignoring invalid value for {name}: {os.environ[name]!r}")
        return current
    return value


class Config:
    """
    Configuration for one provmath analysis run.
    """

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            overrides: Optional configuration overrides
        """
        self._config = {}
        self.load_config(overrides)

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> None:
        """
        Load configuration from all sources.

        Args:
            overrides: Optional configuration overrides
        """
        # Start with default configuration
        config = self._get_defaults()

        # Apply environment variables
        config = self._apply_env_vars(config)

        # Apply overrides
        if overrides:
            config = self._apply_overrides(config, overrides)

        # Apply inferred values
        config = self._apply_inferred_values(config)

        self._config = config
        logger.debug("Configuration loaded")

    def _get_defaults(self) -> Dict[str, Any]:
        """
        Get default configuration values.

        Returns:
            Default configuration
        """
        return {
            # Input table
            'input': {
                'path': None,           # bundled dataset when unset
                'key-column': 'province',
                'separator': ',',
                'exclude-columns': []
            },

            # Derived columns: name -> [numerator, denominator]
            'features': {
                'ratios': {
                    'gdp_per_cap': ['gdp', 'pop']
                }
            },

            # Principal components
            'pca': {
                'backend': 'lapack',
                'tolerance': 1e-10,
                'max-iter': 1000
            },

            # K-means on the leading components
            'kmeans': {
                'k': 4,
                'restarts': 20,
                'max-iter': 50,
                'seed': 1234,
                'components': 2,
                'empty-cluster-policy': 'reseed',
                'require-convergence': False
            },

            # Write-back
            'output': {
                'dir': None
            },

            # Logging
            'logging': {
                'level': 'warn'
            }
        }

    def _apply_env_vars(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variables to configuration.

        Args:
            config: Current configuration

        Returns:
            Updated configuration
        """
        config = deepcopy(config)

        # Input
        config['input']['path'] = _env('PROVMATH_INPUT', config['input']['path'])
        config['input']['key-column'] = _env('PROVMATH_KEY_COLUMN', config['input']['key-column'])
        config['input']['separator'] = _env('PROVMATH_SEPARATOR', config['input']['separator'])
        config['input']['exclude-columns'] = _env('PROVMATH_EXCLUDE_COLUMNS',
                                                  config['input']['exclude-columns'], to_list)

        # PCA
        config['pca']['backend'] = _env('PCA_BACKEND', config['pca']['backend'])
        config['pca']['max-iter'] = _env('PCA_MAX_ITER', config['pca']['max-iter'], to_int)

        # K-means
        config['kmeans']['k'] = _env('KMEANS_K', config['kmeans']['k'], to_int)
        config['kmeans']['restarts'] = _env('KMEANS_RESTARTS', config['kmeans']['restarts'], to_int)
        config['kmeans']['max-iter'] = _env('KMEANS_MAX_ITER', config['kmeans']['max-iter'], to_int)
        config['kmeans']['seed'] = _env('KMEANS_SEED', config['kmeans']['seed'], to_int)
        config['kmeans']['components'] = _env('KMEANS_COMPONENTS', config['kmeans']['components'], to_int)
        config['kmeans']['empty-cluster-policy'] = _env('KMEANS_EMPTY_CLUSTER_POLICY',
                                                        config['kmeans']['empty-cluster-policy'])
        config['kmeans']['require-convergence'] = _env('KMEANS_REQUIRE_CONVERGENCE',
                                                       config['kmeans']['require-convergence'], to_bool)

        # Output
        config['output']['dir'] = _env('PROVMATH_OUTPUT_DIR', config['output']['dir'])

        # Logging
        config['logging']['level'] = _env('LOG_LEVEL', config['logging']['level']).lower()

        return config

    def _apply_overrides(self, config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply configuration overrides.

        Args:
            config: Current configuration
            overrides: Configuration overrides

        Returns:
            Updated configuration
        """
        config = deepcopy(config)

        # Helper function for deep update
        def deep_update(d, u):
            for k, v in u.items():
                if isinstance(v, dict) and k in d and isinstance(d[k], dict) and k != 'ratios':
                    d[k] = deep_update(d[k], v)
                else:
                    d[k] = deepcopy(v)
            return d

        return deep_update(config, overrides)

    def _apply_inferred_values(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply inferred configuration values.

        Args:
            config: Current configuration

        Returns:
            Updated configuration
        """
        config = deepcopy(config)

        if not config['input']['path']:
            from provmath.data_loader import bundled_dataset_path
            config['input']['path'] = bundled_dataset_path()

        return config

    def validate(self) -> None:
        """
        Check value ranges that do not depend on the data.

        Raises:
            InvalidParameterError: for an invalid setting
        """
        from provmath.math.clusters import EMPTY_CLUSTER_POLICIES
        from provmath.math.pca import BACKENDS

        for path in ('kmeans.k', 'kmeans.restarts', 'kmeans.max-iter',
                     'kmeans.components', 'pca.max-iter'):
            value = self.get(path)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise InvalidParameterError(f"{path} must be a positive integer, got {value!r}")

        seed = self.get('kmeans.seed')
        if not isinstance(seed, int) or isinstance(seed, bool) or seed < 0:
            raise InvalidParameterError(f"kmeans.seed must be a non-negative integer, got {seed!r}")

        if self.get('pca.backend') not in BACKENDS:
            raise InvalidParameterError(
                f"pca.backend must be one of {', '.join(BACKENDS)}, got {self.get('pca.backend')!r}"
            )
        if self.get('kmeans.empty-cluster-policy') not in EMPTY_CLUSTER_POLICIES:
            raise InvalidParameterError(
                f"kmeans.empty-cluster-policy must be one of {', '.join(EMPTY_CLUSTER_POLICIES)}, "
                f"got {self.get('kmeans.empty-cluster-policy')!r}"
            )

        tolerance = to_float(self.get('pca.tolerance'))
        if tolerance is None or tolerance <= 0:
            raise InvalidParameterError(f"pca.tolerance must be positive, got {self.get('pca.tolerance')!r}")

        ratios = self.get('features.ratios') or {}
        if not isinstance(ratios, dict):
            raise InvalidParameterError("features.ratios must be a mapping of name -> [numerator, denominator]")

        level = self.get('logging.level')
        if str(level).upper() not in LOG_LEVELS:
            raise InvalidParameterError(
                f"logging.level must be one of {', '.join(name.lower() for name in LOG_LEVELS)}, got {level!r}"
            )

    def get(self, path: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            path: Configuration path (dot-separated)
            default: Default value if not found

        Returns:
            Configuration value, or default if not found
        """
        value = self._config

        for component in path.split('.'):
            if isinstance(value, dict) and component in value:
                value = value[component]
            else:
                return default

        return value

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            path: Configuration path (dot-separated)
            value: Configuration value
        """
        components = path.split('.')
        config = self._config

        for component in components[:-1]:
            if component not in config:
                config[component] = {}
            config = config[component]

        config[components[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert configuration to a dictionary.

        Returns:
            Configuration dictionary
        """
        return deepcopy(self._config)

    def save_to_file(self, filepath: str) -> None:
        """
        Save configuration to a file.

        Args:
            filepath: Path to save configuration
        """
        if filepath.endswith('.json'):
            with open(filepath, 'w') as f:
                json.dump(self._config, f, indent=2)
        elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
            with open(filepath, 'w') as f:
                yaml.safe_dump(self._config, f, default_flow_style=False)
        else:
            raise ValueError(f"Unsupported file format: {filepath}")

    def load_from_file(self, filepath: str) -> None:
        """
        Load configuration from a file.

        Args:
            filepath: Path to load configuration from
        """
        self.load_config(load_config_file(filepath))


def load_config_file(filepath: str) -> Dict[str, Any]:
    """
    Load configuration overrides from a JSON or YAML file.

    Args:
        filepath: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        MalformedInputError: if the file is missing, has an unsupported
            extension, does not parse or does not hold a mapping
    """
    if filepath.endswith('.json'):
        parse = json.load
    elif filepath.endswith('.yaml') or filepath.endswith('.yml'):
        parse = yaml.safe_load
    else:
        raise MalformedInputError(f"Unsupported configuration file format: {filepath}")

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            data = parse(f) or {}
    except OSError as e:
        raise MalformedInputError(f"Could not read configuration file {filepath}: {e}") from e
    except (ValueError, yaml.YAMLError) as e:
        raise MalformedInputError(f"Could not parse configuration file {filepath}: {e}") from e

    if not isinstance(data, dict):
        raise MalformedInputError(f"Configuration file {filepath} must hold a mapping")
    return data
