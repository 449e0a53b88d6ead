"""Data types that describe file organisation rules and their results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, TypeVar, Union

from fman.database import File

DEFAULT_RULES_FILE = "rules.yml"
DEFAULT_VERSION = "1.0"

OP_EQUAL = "=="
OP_NOT_EQUAL = "!="
OP_GREATER_THAN = ">"
OP_LESS_THAN = "<"
OP_GREATER_THAN_OR_EQUAL = ">="
OP_LESS_THAN_OR_EQUAL = "<="
OP_CONTAINS = "contains"
OP_MATCHES = "matches"
OP_STARTS_WITH = "starts_with"
OP_ENDS_WITH = "ends_with"


class _StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value


class ConditionType(_StrEnum):
    """Kinds of test a rule condition can apply to a file."""

    NAME_PATTERN = "name_pattern"
    EXTENSION = "extension"
    SIZE = "size"
    AGE = "age"
    MODIFIED = "modified"
    PATH = "path"
    FILE_TYPE = "file_type"
    MIME_TYPE = "mime_type"


class ActionType(_StrEnum):
    """Kinds of action a rule can perform on a matching file."""

    MOVE = "move"
    COPY = "copy"
    DELETE = "delete"
    RENAME = "rename"
    LINK = "link"


_E = TypeVar("_E", bound=_StrEnum)


def _scalar(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bool):
        return "true" if raw else "false"
    return str(raw)


def _coerce(enum_cls: type[_E], raw: Any) -> _E | str:
    """Known values become enum members; unknown ones stay plain strings."""
    text = _scalar(raw)
    try:
        return enum_cls(text)
    except ValueError:
        return text


def _time_to_data(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment is not None else None


def _time_from_data(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime.combine(raw, time(), tzinfo=timezone.utc)
    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
    raise ValueError(f"invalid timestamp: {raw!r}")


@dataclass
class Condition:
    """A test that a file must pass for a rule to apply."""

    type: Union[ConditionType, str]
    value: str = ""
    operator: str = ""
    field: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": str(self.type)}
        if self.operator:
            data["operator"] = self.operator
        data["value"] = self.value
        if self.field:
            data["field"] = self.field
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Condition:
        return cls(
            type=_coerce(ConditionType, data.get("type")),
            value=_scalar(data.get("value")),
            operator=_scalar(data.get("operator")),
            field=_scalar(data.get("field")),
        )


@dataclass
class Action:
    """Something to do with a file that matched a rule."""

    type: Union[ActionType, str]
    destination: str = ""
    template: str = ""
    backup: bool = False
    confirm: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": str(self.type)}
        if self.destination:
            data["destination"] = self.destination
        if self.template:
            data["template"] = self.template
        if self.backup:
            data["backup"] = True
        if self.confirm:
            data["confirm"] = True
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Action:
        return cls(
            type=_coerce(ActionType, data.get("type")),
            destination=_scalar(data.get("destination")),
            template=_scalar(data.get("template")),
            backup=bool(data.get("backup", False)),
            confirm=bool(data.get("confirm", False)),
        )


@dataclass
class Rule:
    """A named set of conditions and the actions to run when all of them hold."""

    name: str
    description: str = ""
    enabled: bool = False
    conditions: list[Condition] = field(default_factory=list)
    actions: list[Action] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.description:
            data["description"] = self.description
        data["enabled"] = self.enabled
        data["conditions"] = [condition.to_dict() for condition in self.conditions]
        data["actions"] = [action.to_dict() for action in self.actions]
        data["created_at"] = _time_to_data(self.created_at)
        data["updated_at"] = _time_to_data(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Rule:
        return cls(
            name=_scalar(data.get("name")),
            description=_scalar(data.get("description")),
            enabled=bool(data.get("enabled", False)),
            conditions=[Condition.from_dict(item) for item in data.get("conditions") or []],
            actions=[Action.from_dict(item) for item in data.get("actions") or []],
            created_at=_time_from_data(data.get("created_at")),
            updated_at=_time_from_data(data.get("updated_at")),
        )


@dataclass
class RulesConfig:
    """Contents of the rules configuration file."""

    version: str = DEFAULT_VERSION
    rules: list[Rule] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "rules": [rule.to_dict() for rule in self.rules]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> RulesConfig:
        data = data or {}
        return cls(
            version=_scalar(data.get("version")),
            rules=[Rule.from_dict(item) for item in data.get("rules") or []],
        )


@dataclass
class EvaluationContext:
    """Everything known while a rule is evaluated against one file."""

    file: File
    base_dir: str = ""
    dry_run: bool = False
    verbose: bool = False
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ActionResult:
    """Outcome of one action on one file."""

    action: Action
    source: str = ""
    destination: str = ""
    success: bool = False
    error: Exception | None = None
    skipped: bool = False
    skip_reason: str = ""


@dataclass
class ExecutionResult:
    """Outcome of running all of a rule's actions on one file."""

    rule: Rule | None = None
    file: File = field(default_factory=File)
    actions: list[ActionResult] = field(default_factory=list)
    success: bool = False
    error: Exception | None = None
    skipped: bool = False
    skip_reason: str = ""


@dataclass
class ExecutionSummary:
    """Totals over a run of rules across many files."""

    total_files: int = 0
    processed_files: int = 0
    successful_actions: int = 0
    failed_actions: int = 0
    skipped_actions: int = 0
    results: list[ExecutionResult] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    duration: timedelta = field(default_factory=timedelta)