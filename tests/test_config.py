"""
Tests for the configuration component.
"""

import os

import pytest

from provmath.components.config import Config, load_config_file, to_bool, to_int, to_list
from provmath.data_loader import bundled_dataset_path
from provmath.errors import InvalidParameterError, MalformedInputError


class TestConverters:
    """Tests for the value conversion helpers."""

    def test_to_int(self):
        assert to_int('12') == 12
        assert to_int('twelve') is None
        assert to_int(None) is None

    def test_to_bool(self):
        assert to_bool('yes') is True
        assert to_bool('0') is False
        assert to_bool('maybe') is None

    def test_to_list(self):
        assert to_list('region, notes,') == ['region', 'notes']
        assert to_list(['a']) == ['a']


class TestConfig:
    """Tests for the Config class."""

    def test_defaults(self):
        """Test default values."""
        config = Config()

        assert config.get('kmeans.k') == 4
        assert config.get('kmeans.restarts') == 20
        assert config.get('kmeans.max-iter') == 50
        assert config.get('kmeans.seed') == 1234
        assert config.get('kmeans.components') == 2
        assert config.get('pca.backend') == 'lapack'
        assert config.get('features.ratios') == {'gdp_per_cap': ['gdp', 'pop']}
        assert config.get('input.path') == bundled_dataset_path()
        assert config.get('missing.key', 'fallback') == 'fallback'

        config.validate()

    def test_overrides_deep_merge(self):
        """Test overrides replace single keys and keep their siblings."""
        config = Config({'kmeans': {'k': 3}})

        assert config.get('kmeans.k') == 3
        assert config.get('kmeans.restarts') == 20

    def test_ratio_overrides_replace(self):
        """Test overriding the ratio mapping replaces it entirely."""
        config = Config({'features': {'ratios': {'rate': ['a', 'b']}}})
        assert config.get('features.ratios') == {'rate': ['a', 'b']}

    def test_environment(self, monkeypatch):
        """Test environment variables are applied and overrides win over them."""
        monkeypatch.setenv('KMEANS_K', '6')
        monkeypatch.setenv('KMEANS_REQUIRE_CONVERGENCE', 'true')
        monkeypatch.setenv('PROVMATH_EXCLUDE_COLUMNS', 'region,notes')

        config = Config()
        assert config.get('kmeans.k') == 6
        assert config.get('kmeans.require-convergence') is True
        assert config.get('input.exclude-columns') == ['region', 'notes']

        assert Config({'kmeans': {'k': 2}}).get('kmeans.k') == 2

    def test_invalid_environment_ignored(self, monkeypatch):
        """Test an unparseable environment value keeps the default."""
        monkeypatch.setenv('KMEANS_RESTARTS', 'lots')
        assert Config().get('kmeans.restarts') == 20

    @pytest.mark.parametrize('overrides', [
        {'kmeans': {'k': 0}},
        {'kmeans': {'restarts': 0}},
        {'kmeans': {'seed': -3}},
        {'kmeans': {'components': 'two'}},
        {'kmeans': {'empty-cluster-policy': 'drop'}},
        {'pca': {'backend': 'svd'}},
        {'pca': {'tolerance': 0}},
        {'logging': {'level': 'loud'}},
    ])
    def test_validate(self, overrides):
        """Test validation rejects out-of-range settings."""
        with pytest.raises(InvalidParameterError):
            Config(overrides).validate()

    def test_set(self):
        """Test setting values by dotted path."""
        config = Config()
        config.set('kmeans.k', 7)
        config.set('extra.nested.value', 1)

        assert config.get('kmeans.k') == 7
        assert config.get('extra.nested.value') == 1
        assert config.to_dict()['kmeans']['k'] == 7

    def test_save_and_load(self, tmp_path):
        """Test saving to YAML and loading the file back."""
        path = str(tmp_path / 'config.yaml')
        Config({'kmeans': {'k': 5}, 'pca': {'backend': 'power'}}).save_to_file(path)

        assert os.path.exists(path)
        assert load_config_file(path)['kmeans']['k'] == 5

        config = Config()
        config.load_from_file(path)
        assert config.get('kmeans.k') == 5
        assert config.get('pca.backend') == 'power'

    def test_json_file(self, tmp_path):
        """Test JSON configuration files."""
        path = tmp_path / 'config.json'
        path.write_text('{"kmeans": {"seed": 9}}', encoding='utf-8')
        assert load_config_file(str(path)) == {'kmeans': {'seed': 9}}

    def test_invalid_log_level_from_environment(self, monkeypatch):
        """Test an unknown LOG_LEVEL fails validation instead of logging setup."""
        monkeypatch.setenv('LOG_LEVEL', 'loud')
        with pytest.raises(InvalidParameterError):
            Config().validate()

    def test_unsupported_format(self, tmp_path):
        """Test unknown file extensions are rejected."""
        with pytest.raises(MalformedInputError):
            load_config_file(str(tmp_path / 'config.ini'))
        with pytest.raises(ValueError):
            Config().save_to_file(str(tmp_path / 'config.ini'))

    def test_missing_file(self, tmp_path):
        """Test a missing configuration file is reported as malformed input."""
        with pytest.raises(MalformedInputError):
            load_config_file(str(tmp_path / 'nope.yaml'))

    def test_unparseable_file(self, tmp_path):
        """Test broken YAML and JSON are reported as malformed input."""
        yaml_path = tmp_path / 'broken.yaml'
        yaml_path.write_text('kmeans: [1, 2\n', encoding='utf-8')
        json_path = tmp_path / 'broken.json'
        json_path.write_text('{"kmeans": ', encoding='utf-8')

        with pytest.raises(MalformedInputError):
            load_config_file(str(yaml_path))
        with pytest.raises(MalformedInputError):
            load_config_file(str(json_path))

    def test_file_must_hold_mapping(self, tmp_path):
        """Test a configuration file holding a list is rejected."""
        path = tmp_path / 'list.yaml'
        path.write_text('- 1\n- 2\n', encoding='utf-8')
        with pytest.raises(MalformedInputError):
            load_config_file(str(path))
