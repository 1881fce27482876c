"""Unit tests for configuration management."""

from pathlib import Path

import pytest
import yaml

from src.rulegraph.config import (
    EngineConfig,
    ExecutionConfig,
    FailurePolicy,
    InputConfig,
    InputFormat,
    LogFormat,
    LoggingConfig,
    OutputConfig,
    OutputFormat,
    load_config,
)


class TestSections:
    """Test configuration section dataclasses."""

    def test_default_values(self):
        """Test default configuration values."""
        config = EngineConfig()

        assert config.execution.failure_policy == FailurePolicy.CONTINUE
        assert config.execution.enable_metrics is True
        assert config.execution.baseline is None
        assert config.input.format == InputFormat.DETECT
        assert config.input.object_path is None
        assert config.input.target_name_fields == ["name", "id"]
        assert config.output.format == OutputFormat.TABLE
        assert config.output.path is None
        assert config.output.show_skipped is True
        assert config.logging.level == "INFO"
        assert config.logging.format == LogFormat.CONSOLE
        assert config.logging.file is None

    def test_enum_strings_are_coerced(self):
        """Test that string values are converted to enums."""
        assert ExecutionConfig(failure_policy="fail_fast").failure_policy is FailurePolicy.FAIL_FAST
        assert InputConfig(format="json").format is InputFormat.JSON
        assert OutputConfig(format="yaml").format is OutputFormat.YAML
        assert LoggingConfig(format="json").format is LogFormat.JSON

    def test_invalid_enum_value_raises(self):
        """Test that unknown enum values are rejected."""
        with pytest.raises(ValueError):
            ExecutionConfig(failure_policy="sometimes")

    def test_paths_are_coerced(self):
        """Test that path strings become Path objects."""
        assert OutputConfig(path="out/report.json").path == Path("out/report.json")
        assert LoggingConfig(file="logs/run.log").file == Path("logs/run.log")


class TestEngineConfigFile:
    """Test loading and saving YAML configuration files."""

    def test_from_file(self, tmp_path):
        """Test loading configuration from YAML file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            yaml.dump(
                {
                    "execution": {"failure_policy": "fail_fast", "baseline": "Production"},
                    "input": {"object_path": "resources", "target_name_fields": ["id"]},
                    "output": {"format": "json", "show_skipped": False},
                    "logging": {"level": "DEBUG", "format": "json", "file": "/tmp/rulegraph.log"},
                }
            )
        )

        config = EngineConfig.from_file(config_file)

        assert config.execution.failure_policy is FailurePolicy.FAIL_FAST
        assert config.execution.baseline == "Production"
        assert config.input.object_path == "resources"
        assert config.input.target_name_fields == ["id"]
        assert config.output.format is OutputFormat.JSON
        assert config.output.show_skipped is False
        assert config.logging.level == "DEBUG"
        assert config.logging.file == Path("/tmp/rulegraph.log")

    def test_from_file_partial_sections(self, tmp_path):
        """Test that missing sections use defaults."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("output:\n  format: yaml\n")

        config = EngineConfig.from_file(config_file)

        assert config.output.format is OutputFormat.YAML
        assert config.execution.failure_policy is FailurePolicy.CONTINUE

    def test_from_file_empty(self, tmp_path):
        """Test that an empty file yields defaults."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        assert EngineConfig.from_file(config_file) == EngineConfig()

    def test_from_file_invalid_yaml(self, tmp_path):
        """Test loading invalid YAML."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("execution: [unclosed")

        with pytest.raises(ValueError, match="Invalid YAML"):
            EngineConfig.from_file(config_file)

    def test_from_file_not_a_mapping(self, tmp_path):
        """Test loading a YAML list instead of a mapping."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="expected dictionary, got list"):
            EngineConfig.from_file(config_file)

    def test_from_file_unknown_section(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("policy: {}\n")

        with pytest.raises(ValueError, match="Unknown configuration sections"):
            EngineConfig.from_file(config_file)

    def test_from_file_unknown_key(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("execution:\n  retries: 3\n")

        with pytest.raises(ValueError, match="retries"):
            EngineConfig.from_file(config_file)

    def test_from_file_invalid_enum(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("output:\n  format: html\n")

        with pytest.raises(ValueError):
            EngineConfig.from_file(config_file)

    def test_to_file_round_trip(self, tmp_path):
        """Test saving and reloading configuration."""
        config = EngineConfig(
            execution=ExecutionConfig(failure_policy=FailurePolicy.FAIL_FAST, baseline="Nightly"),
            output=OutputConfig(format=OutputFormat.YAML, path=Path("reports/out.yaml")),
        )
        config_file = tmp_path / "nested" / "config.yaml"

        config.to_file(config_file)
        data = yaml.safe_load(config_file.read_text())

        assert data["execution"]["failure_policy"] == "fail_fast"
        assert data["output"]["path"] == "reports/out.yaml"
        assert "file" not in data["logging"]
        assert EngineConfig.from_file(config_file) == config


class TestEnvironment:
    """Test configuration from environment variables."""

    def test_from_env_defaults(self, monkeypatch):
        for name in (
            "RULEGRAPH_LOG_LEVEL",
            "RULEGRAPH_LOG_FORMAT",
            "RULEGRAPH_OUTPUT_FORMAT",
            "RULEGRAPH_BASELINE",
            "RULEGRAPH_FAILURE_POLICY",
        ):
            monkeypatch.delenv(name, raising=False)

        assert EngineConfig.from_env() == EngineConfig()

    def test_from_env_values(self, monkeypatch):
        monkeypatch.setenv("RULEGRAPH_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("RULEGRAPH_LOG_FORMAT", "JSON")
        monkeypatch.setenv("RULEGRAPH_OUTPUT_FORMAT", "yaml")
        monkeypatch.setenv("RULEGRAPH_BASELINE", "Production")
        monkeypatch.setenv("RULEGRAPH_FAILURE_POLICY", "fail_fast")

        config = EngineConfig.from_env()

        assert config.logging.level == "DEBUG"
        assert config.logging.format is LogFormat.JSON
        assert config.output.format is OutputFormat.YAML
        assert config.execution.baseline == "Production"
        assert config.execution.failure_policy is FailurePolicy.FAIL_FAST

    def test_from_env_invalid_value(self, monkeypatch):
        monkeypatch.setenv("RULEGRAPH_FAILURE_POLICY", "never")

        with pytest.raises(ValueError):
            EngineConfig.from_env()


class TestLoadConfig:
    """Test load_config helper."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("execution:\n  enable_metrics: false\n")

        assert load_config(config_file).execution.enable_metrics is False

    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv("RULEGRAPH_BASELINE", "Env")

        assert load_config(None).execution.baseline == "Env"
