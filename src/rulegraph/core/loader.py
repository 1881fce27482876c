"""Rule and baseline loader.

Overview:
--------
The RuleLoader reads YAML and JSON resource documents and turns them into
executable Rule objects and Baseline selections. Documents are validated with
Pydantic; the ``kind`` field picks the model (RuleResource, BaselineResource).

Document Layout:
---------------
A file may hold any number of resources: several ``---`` separated YAML
documents, or a YAML/JSON list of resources.

```
apiVersion: rulegraph/v1
kind: Rule
metadata:
  name: Storage.Encrypted
spec:
  dependsOn: [Storage.Exists]
  condition:
    field: properties.encryption.enabled
    equals: true
---
apiVersion: rulegraph/v1
kind: Baseline
metadata:
  name: Production
spec:
  rule:
    include: [Storage.Exists, Storage.Encrypted]
```

Error Handling:
--------------
- FileNotFoundError: A path doesn't exist
- RuleDefinitionError: Unreadable file, schema violation, invalid field path
  or a duplicate rule/baseline name; the message names the file and document
"""

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import TypeAdapter, ValidationError

from ..models.rules import BaselineResource, ResourceDocument, Rule, RuleResource
from ..utils.exceptions import BaselineNotFoundError, RuleDefinitionError
from .baseline import Baseline
from .conditions import compile_expression
from .documents import discover_files, read_documents

logger = structlog.get_logger(__name__)


@dataclass
class RuleSet:
    """
    Everything loaded from a set of rule files.

    Attributes:
        rules: Rules in load order (files in argument order, documents in file order)
        baselines: Baselines by name
    """

    rules: list[Rule] = field(default_factory=list)
    baselines: dict[str, Baseline] = field(default_factory=dict)

    @property
    def rule_ids(self) -> list[str]:
        return [rule.id for rule in self.rules]

    def get_baseline(self, name: str) -> Baseline:
        """
        Look up a baseline by name. Selecting an obsolete baseline logs a warning.

        Raises:
            BaselineNotFoundError: If no baseline has this name
        """
        try:
            baseline = self.baselines[name]
        except KeyError:
            raise BaselineNotFoundError(name, list(self.baselines)) from None

        if baseline.obsolete:
            logger.warning("Baseline is obsolete", baseline=name, source=baseline.source)
        return baseline

    def select(self, baseline: str | None = None) -> list[Rule]:
        """
        Rules for a run: all rules, or the selection of a named baseline.

        Args:
            baseline: Optional baseline name

        Returns:
            Rules in scheduling order
        """
        if baseline is None:
            return list(self.rules)
        return self.get_baseline(baseline).select(self.rules)


class RuleLoader:
    """
    Load rule documents into a RuleSet.

    Features:
    - Files and directories (recursive, *.yaml / *.yml / *.json / *.jsonc)
    - Multi-document YAML and top-level resource lists
    - Condition field paths checked at load time
    - Duplicate names detected across files
    """

    def __init__(self) -> None:
        self._adapter: TypeAdapter[RuleResource | BaselineResource] = TypeAdapter(ResourceDocument)
        self.files_loaded = 0

    def load(self, paths: Iterable[str | Path]) -> RuleSet:
        """
        Load every resource found under the given paths.

        Args:
            paths: Rule files and directories

        Returns:
            RuleSet with rules and baselines

        Raises:
            FileNotFoundError: If a path doesn't exist
            RuleDefinitionError: If a document is invalid
        """
        rule_set = RuleSet()
        rule_sources: dict[str, str] = {}

        for path in discover_files(paths):
            for resource in self.load_file(path):
                if isinstance(resource, RuleResource):
                    if resource.name in rule_sources:
                        raise RuleDefinitionError(
                            f"Duplicate rule name '{resource.name}' "
                            f"(first defined in {rule_sources[resource.name]})",
                            source=str(path),
                        )
                    rule_sources[resource.name] = str(path)
                    rule_set.rules.append(self._to_rule(resource, path))
                else:
                    if resource.name in rule_set.baselines:
                        raise RuleDefinitionError(
                            f"Duplicate baseline name '{resource.name}' "
                            f"(first defined in {rule_set.baselines[resource.name].source})",
                            source=str(path),
                        )
                    rule_set.baselines[resource.name] = self._to_baseline(resource, path)
            self.files_loaded += 1

        logger.info(
            "Rules loaded",
            files=self.files_loaded,
            rules=len(rule_set.rules),
            baselines=len(rule_set.baselines),
        )
        return rule_set

    def load_file(self, path: Path) -> list[RuleResource | BaselineResource]:
        """
        Validate all resources in a single file.

        Args:
            path: Rule file

        Returns:
            Validated resources in file order

        Raises:
            RuleDefinitionError: If the file can't be parsed or a resource is invalid
        """
        try:
            documents = read_documents(path)
        except (OSError, UnicodeDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise RuleDefinitionError(
                f"Cannot read rule file: {e}", source=str(path), original_error=e
            ) from e

        resources: list[RuleResource | BaselineResource] = []
        position = 0
        for document in documents:
            items = document if isinstance(document, list) else [document]
            for item in items:
                position += 1
                resources.append(self._validate(item, path, position))

        logger.debug("Rule file loaded", path=str(path), resources=len(resources))
        return resources

    def _validate(self, data: Any, path: Path, position: int) -> RuleResource | BaselineResource:
        if not isinstance(data, dict):
            raise RuleDefinitionError(
                f"Resource {position}: expected a mapping, got {type(data).__name__}",
                source=str(path),
            )

        try:
            return self._adapter.validate_python(data)
        except ValidationError as e:
            raise RuleDefinitionError(
                f"Resource {position}: {self._format_validation_error(e)}",
                source=str(path),
                original_error=e,
            ) from e

    def _format_validation_error(self, error: ValidationError) -> str:
        """
        Format Pydantic validation error into a one-line message.

        Args:
            error: Pydantic ValidationError

        Returns:
            Location and message of the first error, with a count of the rest
        """
        errors = error.errors()
        if not errors:
            return str(error)

        first_error = errors[0]
        location = ".".join(str(loc) for loc in first_error["loc"])
        msg = first_error["msg"]

        if len(errors) > 1:
            return f"{location}: {msg} (and {len(errors) - 1} more errors)"
        return f"{location}: {msg}"

    def _to_rule(self, resource: RuleResource, path: Path) -> Rule:
        spec = resource.spec
        try:
            condition = compile_expression(spec.condition)
            where = compile_expression(spec.where) if spec.where is not None else None
        except ValueError as e:
            raise RuleDefinitionError(
                f"Rule {resource.name}: {e}", source=str(path), original_error=e
            ) from e

        return Rule(
            id=resource.name,
            condition=condition,
            depends_on=tuple(spec.depends_on),
            synopsis=spec.synopsis,
            level=spec.level,
            where=where,
            source=str(path),
            annotations=dict(resource.metadata.annotations),
            recommend=spec.recommend,
        )

    def _to_baseline(self, resource: BaselineResource, path: Path) -> Baseline:
        spec = resource.spec
        return Baseline(
            name=resource.name,
            include=list(spec.rule.include),
            exclude=list(spec.rule.exclude),
            synopsis=spec.synopsis,
            source=str(path),
            obsolete=spec.obsolete,
            configuration=dict(spec.configuration),
            annotations=dict(resource.metadata.annotations),
            api_version=resource.api_version,
        )
