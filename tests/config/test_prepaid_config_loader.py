"""
Tests for prepaid_config: YAML loading, validation and get_active_config().
"""

from decimal import Decimal

import pytest
import yaml

from prepaid_config import ReconConfig, get_active_config
from prepaid_config.loader import compute_checksum, load_yaml_file, parse_config

VALID = """\
config_id: test-set
version: 4
dashboard_years: [2020, 2021, 2022, 2023, 2024]
default_tolerance: 0.01
max_recompute_attempts: 5
log_level: debug
"""


@pytest.fixture
def write_yaml(tmp_path):
    def _write(text: str, name: str = "recon.yaml"):
        path = tmp_path / name
        path.write_text(text)
        return path
    return _write


class TestGetActiveConfig:

    def test_bundled_default(self):
        config = get_active_config()
        assert config.config_id == "prepaid-default"
        assert config.dashboard_years == (2021, 2022, 2023, 2024, 2025)
        assert config.default_tolerance == Decimal("0")
        assert config.max_recompute_attempts == 3
        assert len(config.checksum) == 64

    def test_explicit_file(self, write_yaml):
        config = get_active_config(write_yaml(VALID))
        assert config.config_id == "test-set"
        assert config.version == 4
        assert config.dashboard_years == (2020, 2021, 2022, 2023, 2024)
        assert config.default_tolerance == Decimal("0.01")
        assert config.max_recompute_attempts == 5
        assert config.log_level == "DEBUG"

    def test_emits_config_loaded(self, write_yaml, captured_logs):
        path = write_yaml(VALID)
        config = get_active_config(path)

        loaded = [r for r in captured_logs() if r["message"] == "config_loaded"]
        assert len(loaded) == 1
        assert loaded[0]["source"] == str(path)
        assert loaded[0]["config_id"] == "test-set"
        assert loaded[0]["checksum"] == config.checksum

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, write_yaml):
        with pytest.raises(yaml.YAMLError):
            get_active_config(write_yaml("dashboard_years: [2021, 2022\n"))


class TestLoadYamlFile:

    def test_empty_file_is_empty_mapping(self, write_yaml):
        assert load_yaml_file(write_yaml("")) == {}

    def test_top_level_must_be_mapping(self, write_yaml):
        with pytest.raises(ValueError, match="mapping"):
            load_yaml_file(write_yaml("- a\n- b\n"))


class TestParseConfig:

    def test_defaults_for_empty_mapping(self):
        config = parse_config({})
        assert config.dashboard_years == ReconConfig().dashboard_years
        assert config.max_recompute_attempts == 3

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            parse_config({"tolerance": "1"})

    @pytest.mark.parametrize("years", [
        [2021, 2022, 2023, 2024],
        [2021, 2022, 2023, 2024, 2024],
        [2021, 2022, 2023, 2024, "2025"],
        "2021-2025",
    ])
    def test_bad_dashboard_years(self, years):
        with pytest.raises(ValueError):
            parse_config({"dashboard_years": years})

    @pytest.mark.parametrize("tolerance", ["-0.01", "abc", True, "NaN"])
    def test_bad_tolerance(self, tolerance):
        with pytest.raises(ValueError):
            parse_config({"default_tolerance": tolerance})

    @pytest.mark.parametrize("attempts", [0, -1, "3", 2.5])
    def test_bad_attempts(self, attempts):
        with pytest.raises(ValueError):
            parse_config({"max_recompute_attempts": attempts})

    def test_bad_log_level(self):
        with pytest.raises(ValueError, match="log_level"):
            parse_config({"log_level": "verbose"})

    def test_float_tolerance_keeps_its_text(self):
        assert parse_config({"default_tolerance": 0.1}).default_tolerance == Decimal("0.1")


class TestChecksum:

    def test_stable_across_key_order(self):
        a = {"version": 1, "config_id": "x"}
        b = {"config_id": "x", "version": 1}
        assert compute_checksum(a) == compute_checksum(b)

    def test_changes_with_content(self):
        assert compute_checksum({"version": 1}) != compute_checksum({"version": 2})

    def test_recorded_on_config(self):
        data = {"config_id": "x", "default_tolerance": "2"}
        assert parse_config(data).checksum == compute_checksum(data)
