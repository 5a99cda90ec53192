"""Unit tests for configuration models and loading."""

from pathlib import Path

import pytest

from gitstate.config import (
    Config,
    LogFormat,
    LogLevel,
    deep_merge,
    parse_env_vars,
    parse_string_value,
    set_nested_key,
)
from gitstate.exceptions import ConfigLoadError, ConfigValidationError


class TestDefaults:
    def test_default_values(self) -> None:
        config = Config.from_dict({})

        assert config.logging.level == LogLevel.INFO
        assert config.logging.format == LogFormat.JSON
        assert config.network.timeout == 60.0
        assert config.network.max_retries == 1
        assert config.serializer.max_pending == 64
        assert config.history.default_max_count == 50
        assert config.author.name == ""

    def test_config_is_frozen(self) -> None:
        config = Config()

        with pytest.raises(ValueError, match="frozen"):
            config.network = config.network  # pyright: ignore[reportAttributeAccessIssue]

    def test_get_dotted_key(self) -> None:
        config = Config.from_dict({"network": {"timeout": 5}})

        assert config.get("network.timeout") == 5.0
        assert config.get("network.missing", "fallback") == "fallback"


class TestValidation:
    def test_partial_section_keeps_other_defaults(self) -> None:
        config = Config.from_dict({"network": {"max_retries": 3}})

        assert config.network.max_retries == 3
        assert config.network.timeout == 60.0

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            _ = Config.from_dict({"network": {"timeout": 0}})

        assert exc_info.value.key == "network.timeout"
        assert exc_info.value.expected == "> 0"

    def test_rejects_unknown_log_level(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            _ = Config.from_dict({"logging": {"level": "loud"}})

        assert exc_info.value.key == "logging.level"


class TestLoad:
    def test_reads_workspace_file(self, tmp_path: Path) -> None:
        _ = (tmp_path / "gitstate.toml").write_text("[network]\ntimeout = 12.5\n")

        config = Config.load(workspace=tmp_path, include_env=False)

        assert config.network.timeout == 12.5

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _ = (tmp_path / "gitstate.toml").write_text("[serializer]\nmax_pending = 8\n")
        monkeypatch.setenv("GITSTATE_SERIALIZER__MAX_PENDING", "4")

        config = Config.load(workspace=tmp_path)

        assert config.serializer.max_pending == 4

    def test_config_env_var_selects_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config_file = tmp_path / "custom.toml"
        _ = config_file.write_text('[author]\nname = "Bot"\nemail = "bot@example.com"\n')
        monkeypatch.setenv("GITSTATE_CONFIG", str(config_file))

        config = Config.load()

        assert config.author.name == "Bot"

    def test_invalid_toml_raises_load_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "broken.toml"
        _ = config_file.write_text("[network\n")

        with pytest.raises(ConfigLoadError) as exc_info:
            _ = Config.load(path=config_file)

        assert exc_info.value.path == config_file

    def test_missing_workspace_file_uses_defaults(self, tmp_path: Path) -> None:
        assert Config.load(workspace=tmp_path, include_env=False) == Config()


class TestLoaderHelpers:
    def test_deep_merge_does_not_mutate_inputs(self) -> None:
        base = {"network": {"timeout": 1, "max_retries": 1}}
        override = {"network": {"timeout": 2}}

        merged = deep_merge(base, override)

        assert merged == {"network": {"timeout": 2, "max_retries": 1}}
        assert base["network"]["timeout"] == 1

    def test_parse_env_vars_requires_section_separator(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("GITSTATE_NETWORK__TIMEOUT", "3.5")
        monkeypatch.setenv("GITSTATE_AUTHOR_NAME", "ignored")
        monkeypatch.setenv("GITSTATE_LOG_LEVEL", "debug")

        assert parse_env_vars() == {"network": {"timeout": 3.5}}

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("FALSE", False), ("7", 7), ("0.25", 0.25), ("[1, 2]", [1, 2]), ("text", "text")],
    )
    def test_parse_string_value(self, raw: str, expected: object) -> None:
        assert parse_string_value(raw) == expected

    def test_set_nested_key_creates_sections(self) -> None:
        data: dict[str, object] = {}

        set_nested_key(data, "a.b.c", 1)

        assert data == {"a": {"b": {"c": 1}}}
