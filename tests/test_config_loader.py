"""Tests for YAML config loading."""

import pytest

from ccrouter.config_loader import expand_placeholders, load_config
from ccrouter.core.exceptions import ConfigurationError


class TestLoadConfig:
    """Tests for load_config."""

    def test_loads_yaml_with_env_file(self, tmp_path, monkeypatch):
        """Test ${VAR} placeholders resolve from the .env beside the config."""
        monkeypatch.delenv("ACME_KEY", raising=False)
        (tmp_path / ".env").write_text("ACME_KEY=secret\n", encoding="utf-8")
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "providers:\n"
            "  - name: acme\n"
            "    api_base_url: http://acme.test/v1\n"
            "    api_key: ${ACME_KEY}\n"
            "router:\n"
            "  default: acme,gpt-test\n",
            encoding="utf-8",
        )

        config = load_config(str(config_file))

        assert config["providers"][0]["api_key"] == "secret"
        assert config["router"]["default"] == "acme,gpt-test"

    def test_missing_file(self, tmp_path):
        """Test a missing config file raises."""
        with pytest.raises(ConfigurationError, match="Config file not found"):
            load_config(str(tmp_path / "nope.yaml"))

    def test_empty_file(self, tmp_path):
        """Test an empty YAML file loads as an empty dict."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("", encoding="utf-8")
        assert load_config(str(config_file)) == {}

    def test_top_level_must_be_mapping(self, tmp_path):
        """Test a YAML list at the top level is rejected."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_config(str(config_file))

    def test_invalid_yaml(self, tmp_path):
        """Test a parse error becomes a ConfigurationError."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("key: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(str(config_file))

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        """Test CCROUTER_CONFIG is used when no path is given."""
        config_file = tmp_path / "other.yaml"
        config_file.write_text("log_level: DEBUG\n", encoding="utf-8")
        monkeypatch.setenv("CCROUTER_CONFIG", str(config_file))
        assert load_config() == {"log_level": "DEBUG"}

    def test_substitution_can_be_disabled(self, tmp_path):
        """Test placeholders are kept when substitute_env is False."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("key: ${SOMETHING}\n", encoding="utf-8")
        assert load_config(str(config_file), substitute_env=False) == {"key": "${SOMETHING}"}


class TestSubstituteEnvVars:
    """Tests for expand_placeholders."""

    def test_process_environment(self, monkeypatch):
        """Test both placeholder forms use os.environ."""
        monkeypatch.setenv("CCR_TEST_HOST", "example.com")
        result = expand_placeholders({"urls": ["http://${CCR_TEST_HOST}/v1", "$CCR_TEST_HOST"]})
        assert result == {"urls": ["http://example.com/v1", "example.com"]}

    def test_env_file_values_win(self, monkeypatch):
        """Test .env values take precedence over the process environment."""
        monkeypatch.setenv("CCR_TEST_KEY", "from-env")
        assert expand_placeholders("${CCR_TEST_KEY}", {"CCR_TEST_KEY": "from-file"}) == "from-file"

    def test_unset_variable_keeps_placeholder(self, monkeypatch):
        """Test unknown variables are left as-is."""
        monkeypatch.delenv("CCR_TEST_MISSING", raising=False)
        assert expand_placeholders("${CCR_TEST_MISSING}") == "${CCR_TEST_MISSING}"

    def test_non_strings_untouched(self):
        """Test numbers and booleans pass through."""
        assert expand_placeholders({"port": 3456, "debug": False}) == {"port": 3456, "debug": False}
