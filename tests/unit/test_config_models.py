"""Unit tests for configuration models and loading."""
import pytest
import yaml
from pathlib import Path
from pydantic import ValidationError
from vcc.config.loader import load_catalog, load_config
from vcc.config.models import AppConfig, GeneralConfig, RemoteConfig
from vcc.compliance.catalog import default_catalog
from vcc.domain.errors import CatalogError


class TestGeneralConfig:
    def test_defaults(self):
        config = GeneralConfig()
        assert config.threads == 4
        assert config.encode_jobs == 1
        assert config.remediate is False
        assert config.output_subdir == "compliant"
        assert ".mp4" in config.extensions
        assert config.report_name == "compliance_report.json"

    def test_extensions_normalized(self):
        config = GeneralConfig(extensions=["MP4", ".Mov", "mkv"])
        assert config.extensions == [".mp4", ".mov", ".mkv"]

    def test_extensions_cannot_be_empty(self):
        with pytest.raises(ValidationError, match="extensions cannot be empty"):
            GeneralConfig(extensions=[])

    @pytest.mark.parametrize("value", ["", ".", "..", "a/b", "a\\b"])
    def test_output_subdir_must_be_plain_name(self, value):
        with pytest.raises(ValidationError):
            GeneralConfig(output_subdir=value)

    def test_output_subdir_trailing_slash_stripped(self):
        assert GeneralConfig(output_subdir="delivered/").output_subdir == "delivered"

    @pytest.mark.parametrize("field,value", [
        ("threads", 0),
        ("prefetch_factor", 0),
        ("encode_jobs", 0),
        ("encode_jobs", 9),
        ("encode_timeout_s", 0),
        ("min_size_bytes", -1),
    ])
    def test_numeric_bounds(self, field, value):
        with pytest.raises(ValidationError):
            GeneralConfig(**{field: value})


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig()
        assert config.input_dirs == []
        assert config.catalog_path is None
        assert config.remote == RemoteConfig()
        assert config.remote.root is None

    def test_load_config(self, config_file, tmp_path):
        config = load_config(config_file)
        assert config.general.threads == 2
        assert config.general.remediate is True
        assert config.general.output_subdir == "delivered"
        assert config.general.extensions == [".mp4", ".mov"]
        assert config.input_dirs == ["/data/incoming"]
        assert config.remote.staging_dir == str(tmp_path / "staging")

    def test_load_config_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_load_config_empty_file(self, tmp_path):
        conf = tmp_path / "empty.yaml"
        conf.write_text("")
        assert load_config(conf) == AppConfig()

    def test_load_config_invalid_value(self, tmp_path):
        conf = tmp_path / "bad.yaml"
        conf.write_text(yaml.dump({"general": {"threads": 0}}))
        with pytest.raises(ValidationError):
            load_config(conf)

    def test_bundled_config_loads(self):
        config = load_config(Path(__file__).resolve().parents[2] / "conf" / "vcc.yaml")
        assert config.general.output_subdir == "compliant"


class TestLoadCatalog:
    def test_none_returns_default(self):
        assert load_catalog(None) == default_catalog()

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError, match="not found"):
            load_catalog(tmp_path / "nope.yaml")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(CatalogError, match="mapping"):
            load_catalog(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("name: [unclosed\n")
        with pytest.raises(CatalogError, match="Cannot read"):
            load_catalog(path)

    def test_missing_category(self, tmp_path):
        data = default_catalog().model_dump(mode="json")
        del data["categories"]["vertical"]
        path = tmp_path / "catalog.yaml"
        path.write_text(yaml.dump(data))
        with pytest.raises(CatalogError) as exc_info:
            load_catalog(path)
        assert exc_info.value.stage == "catalog"
        assert "vertical" in exc_info.value.message

    def test_inverted_band(self, tmp_path):
        data = default_catalog().model_dump(mode="json")
        data["categories"]["live_action"]["bitrate"] = {"min_kbps": 15000, "max_kbps": 8000}
        path = tmp_path / "catalog.yaml"
        path.write_text(yaml.dump(data))
        with pytest.raises(CatalogError, match="exceeds ceiling"):
            load_catalog(path)

    def test_custom_weights_round_trip(self, tmp_path):
        data = default_catalog().model_dump(mode="json")
        data["name"] = "broadcast"
        data["weights"] = {"critical": 40, "warning": 15, "info": 5}
        path = tmp_path / "catalog.yaml"
        path.write_text(yaml.dump(data))
        catalog = load_catalog(path)
        assert catalog.name == "broadcast"
        assert catalog.weights.critical == 40
