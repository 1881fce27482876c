"""Input reader: turns YAML/JSON files into target objects for evaluation."""

import json
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import structlog
import yaml

from ..config import InputConfig
from ..models.targets import TargetObject
from ..utils.exceptions import InputFormatError
from .conditions import MISSING, parse_path, resolve_field
from .documents import discover_files, read_documents

logger = structlog.get_logger(__name__)


class InputReader:
    """
    Read target objects from input files.

    Each document becomes one target object; a document that is a list yields
    one target per element. With ``object_path`` set, the objects are taken
    from that path inside each document instead.
    """

    def __init__(self, config: InputConfig | None = None) -> None:
        """
        Initialize the reader.

        Args:
            config: Input settings (defaults apply when omitted)

        Raises:
            ValueError: If object_path is malformed
        """
        self.config = config or InputConfig()
        if self.config.object_path:
            parse_path(self.config.object_path)
        for name_field in self.config.target_name_fields:
            parse_path(name_field)
        self.objects_read = 0

    def read(self, paths: Iterable[str | Path]) -> Iterator[TargetObject]:
        """
        Lazily read target objects from files and directories.

        Args:
            paths: Input files and directories

        Yields:
            Target objects in file order

        Raises:
            FileNotFoundError: If a path doesn't exist
            InputFormatError: If a file can't be parsed
        """
        for path in discover_files(paths):
            yield from self.read_file(path)

    def read_file(self, path: Path) -> Iterator[TargetObject]:
        try:
            documents = read_documents(path, self.config.format.value)
        except (OSError, UnicodeDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise InputFormatError(
                f"Cannot read input file: {e}", source=str(path), original_error=e
            ) from e

        index = 0
        for document in documents:
            for value in self._select(document, path):
                yield TargetObject(
                    value=value,
                    name=self._bind_name(value, path.name, index),
                    source=str(path),
                    index=index,
                )
                index += 1
                self.objects_read += 1

        logger.debug("Input file read", path=str(path), objects=index)

    def wrap(self, values: Iterable[Any], source: str = "input") -> list[TargetObject]:
        """
        Bind in-memory values as target objects.

        Args:
            values: Objects to evaluate
            source: Label used for unnamed objects

        Returns:
            Target objects in input order
        """
        return [
            TargetObject(value=value, name=self._bind_name(value, source, index), index=index)
            for index, value in enumerate(values)
        ]

    def _select(self, document: Any, path: Path) -> list[Any]:
        value = document
        if self.config.object_path:
            value = resolve_field(document, self.config.object_path)
            if value is MISSING:
                logger.warning(
                    "Object path not found in document",
                    path=str(path),
                    object_path=self.config.object_path,
                )
                return []

        return list(value) if isinstance(value, list) else [value]

    def _bind_name(self, value: Any, source: str, index: int) -> str:
        """
        Name a target object from the first usable name field.

        Falls back to ``<source>#<index>`` when no field holds a string or number.
        """
        for name_field in self.config.target_name_fields:
            candidate = resolve_field(value, name_field)
            if isinstance(candidate, bool):
                continue
            if isinstance(candidate, (str, int, float)) and str(candidate).strip():
                return str(candidate)
        return f"{source}#{index}"
