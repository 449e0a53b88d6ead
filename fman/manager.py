"""Loading, storing and editing the rules configuration file."""

from __future__ import annotations

import dataclasses
import os
from datetime import datetime
from pathlib import Path

import yaml

from fman.rule_types import (
    DEFAULT_RULES_FILE,
    DEFAULT_VERSION,
    OP_CONTAINS,
    OP_EQUAL,
    OP_GREATER_THAN,
    OP_GREATER_THAN_OR_EQUAL,
    OP_LESS_THAN,
    OP_LESS_THAN_OR_EQUAL,
    OP_NOT_EQUAL,
    Action,
    ActionType,
    Condition,
    ConditionType,
    Rule,
    RulesConfig,
)

_COMPARISON_OPERATORS = frozenset(
    {
        OP_GREATER_THAN,
        OP_LESS_THAN,
        OP_GREATER_THAN_OR_EQUAL,
        OP_LESS_THAN_OR_EQUAL,
        OP_EQUAL,
        OP_NOT_EQUAL,
    }
)

_DESTINATION_ACTIONS = frozenset({ActionType.MOVE, ActionType.COPY, ActionType.LINK})


class RuleError(Exception):
    """A rule could not be found, stored or validated."""


def _now() -> datetime:
    return datetime.now().astimezone()


def _example_rules() -> list[Rule]:
    return [
        Rule(
            name="archive-old-screenshots",
            description="Move screenshots older than 30 days to archive folder",
            enabled=False,
            conditions=[
                Condition(type=ConditionType.NAME_PATTERN, operator=OP_CONTAINS, value="Screenshot"),
                Condition(type=ConditionType.AGE, operator=OP_GREATER_THAN, value="30d"),
            ],
            actions=[
                Action(
                    type=ActionType.MOVE,
                    destination="~/Pictures/Archive/Screenshots/",
                    backup=True,
                    confirm=True,
                ),
            ],
        ),
        Rule(
            name="cleanup-large-temp-files",
            description="Delete temporary files larger than 100MB and older than 7 days",
            enabled=False,
            conditions=[
                Condition(type=ConditionType.PATH, operator=OP_CONTAINS, value="/tmp/"),
                Condition(type=ConditionType.SIZE, operator=OP_GREATER_THAN, value="100M"),
                Condition(type=ConditionType.AGE, operator=OP_GREATER_THAN, value="7d"),
            ],
            actions=[Action(type=ActionType.DELETE, confirm=True)],
        ),
    ]


def _validate_condition(condition: Condition) -> None:
    try:
        kind = ConditionType(condition.type)
    except ValueError:
        raise RuleError(f"invalid condition type: {condition.type}") from None
    if not condition.value:
        raise RuleError("condition value cannot be empty")
    if kind in (ConditionType.SIZE, ConditionType.AGE):
        if condition.operator and condition.operator not in _COMPARISON_OPERATORS:
            raise RuleError(
                f"invalid operator '{condition.operator}' for condition type {kind}"
            )


def _validate_action(action: Action) -> None:
    try:
        kind = ActionType(action.type)
    except ValueError:
        raise RuleError(f"invalid action type: {action.type}") from None
    if kind in _DESTINATION_ACTIONS and not action.destination and not action.template:
        raise RuleError(f"action type '{kind}' requires destination or template")


class RuleManager:
    """Keeps the rules of a configuration directory in memory and on disk."""

    def __init__(self, config_dir: str | os.PathLike[str]) -> None:
        self._config_path = os.path.join(os.fspath(config_dir), DEFAULT_RULES_FILE)
        self._config: RulesConfig | None = None

    @property
    def config_path(self) -> str:
        """Path of the rules configuration file."""
        return self._config_path

    def _require_config(self) -> RulesConfig:
        if self._config is None:
            self._config = RulesConfig(version=DEFAULT_VERSION, rules=[])
        return self._config

    def load_rules(self) -> None:
        """Read the rules file, creating an empty one when it does not exist."""
        path = Path(self._config_path)
        if not path.exists():
            self._config = RulesConfig(version=DEFAULT_VERSION, rules=[])
            self.save_rules()
            return

        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise RuleError(f"failed to read rules file: {exc}") from exc

        try:
            data = yaml.safe_load(text)
            if data is not None and not isinstance(data, dict):
                raise ValueError("the document is not a mapping")
            config = RulesConfig.from_dict(data)
        except (yaml.YAMLError, ValueError, TypeError, AttributeError) as exc:
            raise RuleError(f"failed to parse rules file: {exc}") from exc
        self._config = config

    def save_rules(self) -> None:
        """Write the rules to the configuration file."""
        config = self._require_config()
        path = Path(self._config_path)
        try:
            path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as exc:
            raise RuleError(f"failed to create config directory: {exc}") from exc
        try:
            text = yaml.safe_dump(config.to_dict(), sort_keys=False, allow_unicode=True)
        except yaml.YAMLError as exc:
            raise RuleError(f"failed to marshal rules: {exc}") from exc
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise RuleError(f"failed to write rules file: {exc}") from exc

    @property
    def rules(self) -> list[Rule]:
        """All rules, in file order."""
        if self._config is None:
            return []
        return list(self._config.rules)

    @property
    def enabled_rules(self) -> list[Rule]:
        """Only the rules that are enabled."""
        return [rule for rule in self.rules if rule.enabled]

    def _find(self, name: str) -> Rule | None:
        return next((rule for rule in self.rules if rule.name == name), None)

    def get_rule(self, name: str) -> Rule:
        """The stored rule with this name; changes to it are kept on the next save."""
        rule = self._find(name)
        if rule is None:
            raise RuleError(f"rule '{name}' not found")
        return rule

    def add_rule(self, rule: Rule) -> None:
        """Store a copy of a new rule with fresh timestamps and save."""
        if self._find(rule.name) is not None:
            raise RuleError(f"rule '{rule.name}' already exists")
        now = _now()
        stored = dataclasses.replace(rule, created_at=now, updated_at=now)
        self._require_config().rules.append(stored)
        self.save_rules()

    def update_rule(self, name: str, updated_rule: Rule) -> None:
        """Replace a rule, keeping its name and creation time, and save."""
        config = self._require_config()
        for index, rule in enumerate(config.rules):
            if rule.name == name:
                config.rules[index] = dataclasses.replace(
                    updated_rule,
                    name=name,
                    created_at=rule.created_at,
                    updated_at=_now(),
                )
                self.save_rules()
                return
        raise RuleError(f"rule '{name}' not found")

    def remove_rule(self, name: str) -> None:
        """Delete a rule by name and save."""
        config = self._require_config()
        for index, rule in enumerate(config.rules):
            if rule.name == name:
                del config.rules[index]
                self.save_rules()
                return
        raise RuleError(f"rule '{name}' not found")

    def _set_enabled(self, name: str, enabled: bool) -> None:
        rule = self.get_rule(name)
        rule.enabled = enabled
        rule.updated_at = _now()
        self.save_rules()

    def enable_rule(self, name: str) -> None:
        """Turn a rule on and save."""
        self._set_enabled(name, True)

    def disable_rule(self, name: str) -> None:
        """Turn a rule off and save."""
        self._set_enabled(name, False)

    def validate_rule(self, rule: Rule) -> None:
        """Raise RuleError when the rule's configuration is not usable."""
        if not rule.name:
            raise RuleError("rule name cannot be empty")
        if not rule.conditions:
            raise RuleError("rule must have at least one condition")
        if not rule.actions:
            raise RuleError("rule must have at least one action")
        for number, condition in enumerate(rule.conditions, start=1):
            try:
                _validate_condition(condition)
            except RuleError as exc:
                raise RuleError(f"condition {number}: {exc}") from exc
        for number, action in enumerate(rule.actions, start=1):
            try:
                _validate_action(action)
            except RuleError as exc:
                raise RuleError(f"action {number}: {exc}") from exc

    def create_example_rules(self) -> None:
        """Add the disabled example rules that are not present yet."""
        for rule in _example_rules():
            if self._find(rule.name) is not None:
                continue
            try:
                self.add_rule(rule)
            except RuleError as exc:
                raise RuleError(f"failed to add example rule '{rule.name}': {exc}") from exc