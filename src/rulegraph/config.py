"""Configuration management for rulegraph."""

import os
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import yaml

from .constants import DEFAULT_TARGET_NAME_FIELDS


class FailurePolicy(str, Enum):
    """What to do when a rule fails or errors."""

    CONTINUE = "continue"  # Skip dependents, keep evaluating independent rules
    FAIL_FAST = "fail_fast"  # Stop the run at the first failure


class InputFormat(str, Enum):
    DETECT = "detect"  # By file extension
    YAML = "yaml"
    JSON = "json"
    JSONC = "jsonc"  # JSON with comments


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


class LogFormat(str, Enum):
    CONSOLE = "console"
    JSON = "json"
    JSONC = "jsonc"  # JSON with comments


@dataclass
class ExecutionConfig:
    """
    Execution settings for rule evaluation runs.
    """

    failure_policy: FailurePolicy = FailurePolicy.CONTINUE
    enable_metrics: bool = True
    baseline: str | None = None  # Evaluate only this baseline's selection

    def __post_init__(self) -> None:
        self.failure_policy = FailurePolicy(self.failure_policy)


@dataclass
class InputConfig:
    """How target objects are read from input files."""

    format: InputFormat = InputFormat.DETECT
    object_path: str | None = None  # Dotted path to the objects inside each document
    target_name_fields: list[str] = field(default_factory=lambda: list(DEFAULT_TARGET_NAME_FIELDS))

    def __post_init__(self) -> None:
        self.format = InputFormat(self.format)
        self.target_name_fields = list(self.target_name_fields)


@dataclass
class OutputConfig:
    """Report output settings."""

    format: OutputFormat = OutputFormat.TABLE
    path: Path | None = None  # Write the report here instead of stdout
    show_skipped: bool = True

    def __post_init__(self) -> None:
        self.format = OutputFormat(self.format)
        if self.path is not None:
            self.path = Path(self.path)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: LogFormat = LogFormat.CONSOLE
    file: Path | None = None

    def __post_init__(self) -> None:
        self.format = LogFormat(self.format)
        if self.file is not None:
            self.file = Path(self.file)


_Section = TypeVar("_Section")


def _build_section(section_cls: type[_Section], data: Any, name: str) -> _Section:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping, got {type(data).__name__}")

    known = {f.name for f in fields(section_cls)}  # type: ignore[arg-type]
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown keys in configuration section '{name}': {', '.join(unknown)}")

    return section_cls(**data)


def _section_to_dict(section: Any) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for f in fields(section):
        value = getattr(section, f.name)
        if value is None:
            continue
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, Path):
            value = str(value)
        data[f.name] = value
    return data


@dataclass
class EngineConfig:
    """
    Complete configuration for rulegraph.

    This combines all configuration sections.
    """

    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, config_path: Path) -> "EngineConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            EngineConfig instance

        Raises:
            ValueError: For malformed YAML, unknown keys or invalid enum values
        """
        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid configuration file structure in {config_path}: "
                f"expected dictionary, got {type(data).__name__}"
            )

        unknown = sorted(set(data) - {f.name for f in fields(cls)})
        if unknown:
            raise ValueError(f"Unknown configuration sections in {config_path}: {', '.join(unknown)}")

        return cls(
            execution=_build_section(ExecutionConfig, data.get("execution"), "execution"),
            input=_build_section(InputConfig, data.get("input"), "input"),
            output=_build_section(OutputConfig, data.get("output"), "output"),
            logging=_build_section(LoggingConfig, data.get("logging"), "logging"),
        )

    def to_file(self, config_path: Path) -> None:
        """
        Save configuration to YAML file.

        Args:
            config_path: Path to save config file
        """
        data = {
            "execution": _section_to_dict(self.execution),
            "input": _section_to_dict(self.input),
            "output": _section_to_dict(self.output),
            "logging": _section_to_dict(self.logging),
        }

        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            RULEGRAPH_LOG_LEVEL: Logging level (default: INFO)
            RULEGRAPH_LOG_FORMAT: console or json (default: console)
            RULEGRAPH_OUTPUT_FORMAT: table, json or yaml (default: table)
            RULEGRAPH_BASELINE: Baseline to evaluate (default: all rules)
            RULEGRAPH_FAILURE_POLICY: continue or fail_fast (default: continue)

        Returns:
            EngineConfig instance

        Raises:
            ValueError: If a variable holds an invalid enum value
        """
        return cls(
            execution=ExecutionConfig(
                failure_policy=os.environ.get("RULEGRAPH_FAILURE_POLICY", "continue").lower(),
                baseline=os.environ.get("RULEGRAPH_BASELINE") or None,
            ),
            input=InputConfig(),
            output=OutputConfig(format=os.environ.get("RULEGRAPH_OUTPUT_FORMAT", "table").lower()),
            logging=LoggingConfig(
                level=os.environ.get("RULEGRAPH_LOG_LEVEL", "INFO"),
                format=os.environ.get("RULEGRAPH_LOG_FORMAT", "console").lower(),
            ),
        )


def load_config(config_file: Path | None = None) -> EngineConfig:
    """
    Load configuration from file or environment variables.

    Args:
        config_file: Optional path to YAML config file

    Returns:
        EngineConfig instance

    Raises:
        FileNotFoundError: If config_file is specified but doesn't exist
    """
    if config_file:
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        return EngineConfig.from_file(config_file)
    return EngineConfig.from_env()
