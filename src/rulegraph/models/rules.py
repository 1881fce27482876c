"""Rule and baseline document models with Pydantic v2 discriminated unions.

Documents follow a resource layout:

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
```

The ``kind`` field selects the model (RuleResource or BaselineResource).
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..constants import SUPPORTED_API_VERSIONS

# Python attribute names of the comparison operators, in documentation order
OPERATOR_FIELDS: tuple[str, ...] = (
    "exists",
    "equals",
    "not_equals",
    "greater",
    "greater_or_equals",
    "less",
    "less_or_equals",
    "in_",
    "not_in",
    "contains",
    "starts_with",
    "ends_with",
    "match",
)

NON_NULL_OPERATORS: frozenset[str] = frozenset(
    {"exists", "in_", "not_in", "starts_with", "ends_with", "match"}
)

COMBINATOR_FIELDS: tuple[str, ...] = ("all_of", "any_of", "not_")


class RuleLevel(str, Enum):
    """Severity reported when a rule fails."""

    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"


class Expression(BaseModel):
    """
    A condition expression.

    Either a combinator (``allOf``, ``anyOf`` or ``not``) or a ``field`` with
    exactly one comparison operator.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    field: Annotated[str | None, Field(default=None, min_length=1)]

    all_of: Annotated[
        Optional[list["Expression"]], Field(default=None, alias="allOf", min_length=1)
    ]
    any_of: Annotated[
        Optional[list["Expression"]], Field(default=None, alias="anyOf", min_length=1)
    ]
    not_: Annotated[Optional["Expression"], Field(default=None, alias="not")]

    exists: bool | None = None
    equals: Any = None
    not_equals: Annotated[Any, Field(default=None, alias="notEquals")]
    greater: Any = None
    greater_or_equals: Annotated[Any, Field(default=None, alias="greaterOrEquals")]
    less: Any = None
    less_or_equals: Annotated[Any, Field(default=None, alias="lessOrEquals")]
    in_: Annotated[list[Any] | None, Field(default=None, alias="in")]
    not_in: Annotated[list[Any] | None, Field(default=None, alias="notIn")]
    contains: Any = None
    starts_with: Annotated[str | None, Field(default=None, alias="startsWith")]
    ends_with: Annotated[str | None, Field(default=None, alias="endsWith")]
    match: str | None = None

    @field_validator("match")
    @classmethod
    def _validate_pattern(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid regular expression {v!r}: {e}") from e
        return v

    @model_validator(mode="after")
    def _validate_shape(self) -> "Expression":
        combinators = [name for name in COMBINATOR_FIELDS if name in self.model_fields_set]
        operators = [name for name in OPERATOR_FIELDS if name in self.model_fields_set]

        if combinators:
            if len(combinators) > 1 or self.field is not None or operators:
                raise ValueError(
                    "A combinator expression must use exactly one of allOf, anyOf or not "
                    "and no field/operator keys"
                )
            value = getattr(self, combinators[0])
            if value is None or value == []:
                raise ValueError(f"Combinator '{combinators[0].rstrip('_')}' must not be empty")
            return self

        if self.field is None:
            raise ValueError("Expression requires 'field' or one of allOf, anyOf, not")

        if len(operators) != 1:
            raise ValueError(
                f"Expression for field '{self.field}' must declare exactly one operator, "
                f"got {len(operators)}"
            )

        # equals/notEquals/comparisons may compare against null; these may not
        if operators[0] in NON_NULL_OPERATORS and getattr(self, operators[0]) is None:
            raise ValueError(f"Operator '{operators[0].rstrip('_')}' requires a value")
        return self

    @property
    def operator(self) -> str | None:
        """Name of the comparison operator, or None for combinators."""
        for name in OPERATOR_FIELDS:
            if name in self.model_fields_set:
                return name
        return None

    @property
    def operand(self) -> Any:
        """Value the field is compared against."""
        operator = self.operator
        return getattr(self, operator) if operator else None


Expression.model_rebuild()


class Metadata(BaseModel):
    """Resource metadata."""

    model_config = ConfigDict(extra="allow")

    name: Annotated[str, Field(min_length=1, description="Unique resource name")]
    annotations: Annotated[dict[str, Any], Field(default_factory=dict)]


class RuleSpec(BaseModel):
    """Specification block of a Rule resource."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    synopsis: str | None = None
    recommend: str | None = None
    level: RuleLevel = RuleLevel.ERROR
    depends_on: Annotated[list[str], Field(default_factory=list, alias="dependsOn")]
    where: Expression | None = None
    condition: Expression

    @field_validator("depends_on")
    @classmethod
    def _strip_dependencies(cls, v: list[str]) -> list[str]:
        cleaned = [item.strip() for item in v]
        if any(not item for item in cleaned):
            raise ValueError("dependsOn entries must be non-empty rule names")
        return cleaned


class BaselineRuleSpec(BaseModel):
    """Rule selection of a Baseline resource."""

    model_config = ConfigDict(extra="forbid")

    include: Annotated[list[str], Field(default_factory=list)]
    exclude: Annotated[list[str], Field(default_factory=list)]


class BaselineSpec(BaseModel):
    """Specification block of a Baseline resource."""

    model_config = ConfigDict(extra="forbid")

    synopsis: str | None = None
    obsolete: bool = False
    rule: Annotated[BaselineRuleSpec, Field(default_factory=BaselineRuleSpec)]
    configuration: Annotated[
        dict[str, Any],
        Field(default_factory=dict, description="Free-form values carried with the baseline"),
    ]


class ResourceBase(BaseModel):
    """Fields shared by every resource kind."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    api_version: Annotated[str, Field(alias="apiVersion")]
    metadata: Metadata

    @field_validator("api_version")
    @classmethod
    def _validate_api_version(cls, v: str) -> str:
        if v not in SUPPORTED_API_VERSIONS:
            raise ValueError(
                f"Unsupported apiVersion {v!r}, expected one of {sorted(SUPPORTED_API_VERSIONS)}"
            )
        return v

    @property
    def name(self) -> str:
        return self.metadata.name


class RuleResource(ResourceBase):
    """A rule definition."""

    kind: Literal["Rule"]
    spec: RuleSpec


class BaselineResource(ResourceBase):
    """A baseline: a named, ordered selection of rules."""

    kind: Literal["Baseline"]
    spec: Annotated[BaselineSpec, Field(default_factory=BaselineSpec)]


ResourceDocument = Annotated[
    RuleResource | BaselineResource,
    Field(discriminator="kind"),
]


@dataclass
class Rule:
    """
    An executable rule.

    Implements the IdentifiableTarget contract so rules can be scheduled by
    the dependency graph.

    Attributes:
        id: Rule name, unique within a rule set
        condition: Callable returning True when the target object passes
        depends_on: Rules that must pass before this rule is evaluated
        synopsis: Short description shown in reports
        level: Severity reported on failure
        where: Optional precondition; when it returns False the rule does not apply
        source: File the rule was loaded from
        annotations: Free-form metadata
        recommend: Remediation hint reported when the rule fails
    """

    id: str
    condition: Callable[[Any], bool]
    depends_on: tuple[str, ...] = ()
    synopsis: str | None = None
    level: RuleLevel = RuleLevel.ERROR
    where: Callable[[Any], bool] | None = None
    source: str | None = None
    annotations: dict[str, Any] = field(default_factory=dict)
    recommend: str | None = None
