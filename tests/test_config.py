"""
Tests for configuration loading and derived settings
"""

from pathlib import Path

import pytest

from terrasolver.config import (
    PLUGIN_CACHE_ENV,
    TerrasolverConfig,
    action_environment,
    coerce_value,
    find_config_file,
    inject_auto_approve,
    load_config,
    parse_bool,
    prepare_plugin_cache_dir,
)
from terrasolver.errors import ConfigurationError


@pytest.fixture
def no_config(temp_dir):
    """Explicit empty config file so a user's terrasolver.yaml is never picked up."""
    path = temp_dir / "empty.yaml"
    path.write_text("")
    return path


class TestValues:

    @pytest.mark.parametrize("raw", ["true", "TRUE", "1", "yes", True])
    def test_true_values(self, raw):
        assert parse_bool(raw) is True

    @pytest.mark.parametrize("raw", ["false", "0", "no", "", "maybe", False])
    def test_false_values(self, raw):
        assert parse_bool(raw) is False

    def test_coerce_types(self):
        assert coerce_value("cache_duration", "45") == 45
        assert coerce_value("action_timeout", "1.5") == 1.5
        assert coerce_value("ignore_paths", ".terraform, vendor") == [".terraform", "vendor"]
        assert coerce_value("path", Path("/infra")) == "/infra"

    def test_invalid_number(self):
        with pytest.raises(ConfigurationError):
            coerce_value("cache_duration", "half an hour")


class TestLoadConfig:

    def test_defaults(self, no_config):
        config = load_config(config_path=no_config, environ={})

        assert config.skip_confirm is False
        assert config.deep_dive is True
        assert config.auto_approve is True
        assert config.suppress_warnings is True
        assert config.cache_duration == 30
        assert config.cache_file == ".terrasolver-cache"
        assert config.declaration_ext == ".hcl"
        assert config.terragrunt_bin

    def test_cli_values_override_defaults(self, no_config):
        config = load_config(
            {"cache_duration": 5, "skip_confirm": True, "deep_dive": False, "path": None},
            config_path=no_config,
            environ={},
        )

        assert config.cache_duration == 5
        assert config.skip_confirm is True
        assert config.deep_dive is False

    def test_environment_overrides_cli(self, no_config):
        config = load_config(
            {"cache_duration": 5, "terragrunt_bin": "/opt/tg"},
            config_path=no_config,
            environ={
                "TERRASOLVER_CACHE_DURATION": "60",
                "TERRASOLVER_TERRAGRUNT_BIN": "/usr/bin/terragrunt",
                "TERRASOLVER_NO_CACHE": "true",
                "TERRASOLVER_DEEP_DIVE": "false",
            },
        )

        assert config.cache_duration == 60
        assert config.terragrunt_bin == "/usr/bin/terragrunt"
        assert config.no_cache is True
        assert config.deep_dive is False

    def test_legacy_plugin_cache_variable(self, no_config):
        config = load_config(config_path=no_config, environ={PLUGIN_CACHE_ENV: "/tmp/plugins"})
        assert config.plugin_cache_dir == "/tmp/plugins"

        config = load_config(
            config_path=no_config,
            environ={PLUGIN_CACHE_ENV: "/tmp/plugins", "TERRASOLVER_PLUGIN_CACHE_DIR": "/srv/plugins"},
        )
        assert config.plugin_cache_dir == "/srv/plugins"

    def test_yaml_file(self, temp_dir):
        config_file = temp_dir / "terrasolver.yaml"
        config_file.write_text(
            "cache_duration: 10\n"
            "suppress_warnings: false\n"
            "ignore_paths:\n"
            "  - .terragrunt-cache\n"
            "  - vendor\n"
        )

        config = load_config({"cache_duration": 15}, config_path=config_file, environ={})

        assert config.cache_duration == 15
        assert config.suppress_warnings is False
        assert config.ignore_paths == [".terragrunt-cache", "vendor"]

    def test_config_file_found_from_path(self, temp_dir):
        (temp_dir / "terrasolver.yaml").write_text("cache_duration: 12\n")
        modules = temp_dir / "live" / "dev"
        modules.mkdir(parents=True)

        assert find_config_file(modules) == temp_dir / "terrasolver.yaml"

        config = load_config({"path": str(modules)}, environ={})
        assert config.cache_duration == 12

    def test_config_file_from_environment(self, temp_dir):
        config_file = temp_dir / "custom.yaml"
        config_file.write_text("cache_file: /var/tmp/ts-cache\n")

        config = load_config(environ={"TERRASOLVER_CONFIG": str(config_file)})

        assert config.cache_file == "/var/tmp/ts-cache"

    def test_missing_explicit_config_file(self, temp_dir):
        with pytest.raises(ConfigurationError):
            load_config(config_path=temp_dir / "nope.yaml", environ={})

    def test_invalid_yaml_is_ignored(self, temp_dir):
        config_file = temp_dir / "broken.yaml"
        config_file.write_text("cache_duration: [unclosed\n")

        config = load_config(config_path=config_file, environ={})

        assert config.cache_duration == 30

    def test_invalid_environment_value(self, no_config):
        with pytest.raises(ConfigurationError):
            load_config(config_path=no_config, environ={"TERRASOLVER_CACHE_DURATION": "soon"})

    def test_negative_cache_duration(self, no_config):
        with pytest.raises(ConfigurationError):
            load_config({"cache_duration": -1}, config_path=no_config, environ={})

    def test_non_positive_timeout(self, no_config):
        with pytest.raises(ConfigurationError):
            load_config({"action_timeout": 0}, config_path=no_config, environ={})

    def test_extension_gets_dot(self, no_config):
        config = load_config({"declaration_ext": "hcl"}, config_path=no_config, environ={})
        assert config.declaration_ext == ".hcl"

    def test_unknown_log_level(self, no_config):
        config = load_config({"log_level": "chatty"}, config_path=no_config, environ={})
        assert config.log_level == "INFO"


class TestDerivedSettings:

    def test_inject_auto_approve(self):
        assert inject_auto_approve(["apply"]) == ["apply", "-auto-approve"]
        assert inject_auto_approve(["apply", "-auto-approve"]) == ["apply", "-auto-approve"]
        assert inject_auto_approve(["plan"]) == ["plan"]
        assert inject_auto_approve([]) == []

    def test_plugin_cache_dir_created(self, temp_dir):
        target = temp_dir / "plugins" / "cache"

        result = prepare_plugin_cache_dir(str(target))

        assert result == str(target)
        assert target.is_dir()

    def test_plugin_cache_dir_home_expansion(self, temp_dir, monkeypatch):
        monkeypatch.setenv("HOME", str(temp_dir))

        assert prepare_plugin_cache_dir("~/tf-cache") == str(temp_dir / "tf-cache")
        assert prepare_plugin_cache_dir("$HOME/other") == str(temp_dir / "other")

    def test_plugin_cache_dir_disabled(self):
        assert prepare_plugin_cache_dir("") is None

    def test_plugin_cache_dir_failure(self, temp_dir):
        blocker = temp_dir / "file"
        blocker.write_text("")

        assert prepare_plugin_cache_dir(str(blocker / "cache")) is None

    def test_action_environment(self, temp_dir):
        config = TerrasolverConfig(plugin_cache_dir=str(temp_dir / "plugins"))

        env = action_environment(config, base={"PATH": "/usr/bin"})

        assert env == {"PATH": "/usr/bin", PLUGIN_CACHE_ENV: str(temp_dir / "plugins")}

    def test_action_environment_without_plugin_cache(self):
        config = TerrasolverConfig(plugin_cache_dir="")

        assert action_environment(config, base={"PATH": "/usr/bin"}) == {"PATH": "/usr/bin"}
