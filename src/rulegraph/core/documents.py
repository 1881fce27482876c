"""YAML/JSON document discovery and reading shared by the rule loader and input reader."""

import json
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
import yaml

from ..constants import DOCUMENT_EXTENSIONS, JSON_EXTENSIONS, JSONC_EXTENSIONS, YAML_EXTENSIONS

logger = structlog.get_logger(__name__)


def discover_files(paths: Iterable[str | Path]) -> list[Path]:
    """
    Expand paths into document files.

    Files are kept as given (any extension). Directories are searched
    recursively for YAML, JSON and JSONC files, sorted by path.

    Args:
        paths: Files and directories

    Returns:
        Files in argument order, directory contents sorted

    Raises:
        FileNotFoundError: If a path does not exist
    """
    files: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if not path.exists():
            raise FileNotFoundError(f"Path not found: {path}")

        if path.is_dir():
            found = sorted(
                p for p in path.rglob("*") if p.is_file() and p.suffix.lower() in DOCUMENT_EXTENSIONS
            )
            logger.debug("Expanded directory", path=str(path), files=len(found))
            files.extend(found)
        else:
            files.append(path)

    return files


def detect_format(path: Path) -> str:
    """
    Choose a document format from the file extension.

    JSON for ``.json``, JSON with comments for ``.jsonc``, YAML otherwise
    (YAML also accepts JSON content).
    """
    suffix = path.suffix.lower()
    if suffix in JSON_EXTENSIONS:
        return "json"
    if suffix in JSONC_EXTENSIONS:
        return "jsonc"
    if suffix not in YAML_EXTENSIONS:
        logger.debug("Unknown extension, reading as YAML", path=str(path))
    return "yaml"


# Strings are matched first so comment markers inside them are kept
_JSONC_COMMENT = re.compile(r'"(?:\\.|[^"\\])*"|//[^\n]*|/\*.*?\*/', re.DOTALL)
_JSONC_TRAILING_COMMA = re.compile(r'"(?:\\.|[^"\\])*"|,(?=\s*[}\]])')


def strip_json_comments(text: str) -> str:
    """
    Turn JSON with comments into plain JSON.

    Removes ``//`` and ``/* */`` comments and trailing commas before ``}`` or
    ``]``. Block comments are replaced by their newlines so parse errors keep
    their line numbers.
    """

    def drop_comment(match: re.Match[str]) -> str:
        token = match.group(0)
        if token.startswith('"'):
            return token
        return "\n" * token.count("\n")

    def drop_comma(match: re.Match[str]) -> str:
        token = match.group(0)
        return token if token.startswith('"') else ""

    return _JSONC_TRAILING_COMMA.sub(drop_comma, _JSONC_COMMENT.sub(drop_comment, text))


def read_documents(path: Path, fmt: str = "detect") -> list[Any]:
    """
    Read every document from a file.

    YAML files may hold several ``---`` separated documents; empty documents
    are dropped. JSON and JSONC files hold exactly one document.

    Args:
        path: File to read
        fmt: "detect", "yaml", "json" or "jsonc"

    Returns:
        Parsed documents in file order

    Raises:
        OSError: If the file cannot be read
        UnicodeDecodeError: If the file is not UTF-8
        yaml.YAMLError: For malformed YAML
        json.JSONDecodeError: For malformed JSON
        ValueError: For an unknown format name
    """
    if fmt == "detect":
        fmt = detect_format(path)

    text = path.read_text(encoding="utf-8-sig")

    if fmt == "json":
        return [json.loads(text)]
    if fmt == "jsonc":
        return [json.loads(strip_json_comments(text))]
    if fmt == "yaml":
        return [document for document in yaml.safe_load_all(text) if document is not None]

    raise ValueError(f"Unsupported document format: {fmt}")
