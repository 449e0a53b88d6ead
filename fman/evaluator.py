"""Evaluation of rule conditions against indexed files."""

from __future__ import annotations

import mimetypes
import operator as _op
import os
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from fman.database import File
from fman.rule_types import (
    OP_CONTAINS,
    OP_ENDS_WITH,
    OP_EQUAL,
    OP_GREATER_THAN,
    OP_GREATER_THAN_OR_EQUAL,
    OP_LESS_THAN,
    OP_LESS_THAN_OR_EQUAL,
    OP_MATCHES,
    OP_NOT_EQUAL,
    OP_STARTS_WITH,
    Condition,
    ConditionType,
    Rule,
)

_SEPARATORS = os.sep + (os.altsep or "")

_FILE_TYPES = {
    "image": (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".webp", ".svg"),
    "video": (".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv", ".webm", ".m4v"),
    "audio": (".mp3", ".wav", ".flac", ".aac", ".ogg", ".wma", ".m4a"),
    "document": (".pdf", ".doc", ".docx", ".txt", ".rtf", ".odt", ".pages"),
    "archive": (".zip", ".rar", ".7z", ".tar", ".gz", ".bz2", ".xz"),
    "code": (".go", ".py", ".js", ".ts", ".java", ".cpp", ".c", ".h"),
}

_SIZE_UNITS = {
    "K": 1024,
    "M": 1024**2,
    "G": 1024**3,
    "T": 1024**4,
}

_DURATION_UNITS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 24 * 3600,
    "w": 7 * 24 * 3600,
    "y": 365 * 24 * 3600,
}

_COMPARISONS: dict[str, Callable[[Any, Any], bool]] = {
    "": _op.gt,
    OP_GREATER_THAN: _op.gt,
    OP_LESS_THAN: _op.lt,
    OP_GREATER_THAN_OR_EQUAL: _op.ge,
    OP_LESS_THAN_OR_EQUAL: _op.le,
    OP_EQUAL: _op.eq,
    OP_NOT_EQUAL: _op.ne,
}

_TIME_FORMATS = (
    (re.compile(r"\d{4}-\d{2}-\d{2}"), "%Y-%m-%d"),
    (re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}"), "%Y-%m-%d %H:%M:%S"),
    (re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z"), "%Y-%m-%dT%H:%M:%SZ"),
    (
        re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2}"),
        "%Y-%m-%dT%H:%M:%S%z",
    ),
)


class RuleEvaluationError(ValueError):
    """A condition could not be evaluated."""


def _base_name(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip(_SEPARATORS)
    if not stripped:
        return os.sep
    cut = max(stripped.rfind(sep) for sep in _SEPARATORS)
    return stripped[cut + 1:]


def _extension(path: str) -> str:
    cut = max(path.rfind(sep) for sep in _SEPARATORS)
    name = path[cut + 1:]
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def _as_utc(moment: datetime) -> datetime:
    try:
        return moment.astimezone(timezone.utc)
    except (OverflowError, ValueError, OSError):
        return moment.replace(tzinfo=timezone.utc)


def _parse_float(text: str) -> float:
    if not text or "_" in text or text != text.strip():
        raise ValueError(f"invalid number: {text!r}")
    return float(text)


def parse_size(text: str) -> int:
    """Parse a size such as "500", "1.5K" or "100M" into bytes (binary units)."""
    if not text or not text.strip():
        raise RuleEvaluationError("empty size string")
    text = text.strip()
    multiplier = _SIZE_UNITS.get(text[-1].upper())
    if multiplier is None:
        multiplier = 1
    else:
        text = text[:-1]
    try:
        return int(_parse_float(text) * multiplier)
    except (ValueError, OverflowError) as exc:
        raise RuleEvaluationError(f"invalid size format: {exc}") from exc


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "30d", "1w" or "2h"."""
    if not text or not text.strip():
        raise RuleEvaluationError("empty duration string")
    text = text.strip()
    unit = text[-1].lower()
    try:
        value = _parse_float(text[:-1])
    except ValueError as exc:
        raise RuleEvaluationError(f"invalid duration format: {exc}") from exc
    seconds = _DURATION_UNITS.get(unit)
    if seconds is None:
        raise RuleEvaluationError(f"unknown duration unit: {unit}")
    try:
        return timedelta(seconds=value * seconds)
    except (ValueError, OverflowError) as exc:
        raise RuleEvaluationError(f"invalid duration format: {exc}") from exc


def parse_time(text: str) -> datetime:
    """Parse an absolute date/time or a relative one such as "+30d" or "-1w".

    Times without a zone are taken as UTC; the result is always zone-aware.
    """
    if not text:
        raise RuleEvaluationError("empty time string")
    for pattern, layout in _TIME_FORMATS:
        if not pattern.fullmatch(text):
            continue
        try:
            parsed = datetime.strptime(text, layout)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    if text[0] in "+-":
        try:
            duration = parse_duration(text[1:])
        except RuleEvaluationError as exc:
            raise RuleEvaluationError(f"invalid relative time: {exc}") from exc
        now = datetime.now(timezone.utc)
        try:
            return now + duration if text[0] == "+" else now - duration
        except OverflowError as exc:
            raise RuleEvaluationError(f"invalid relative time: {exc}") from exc

    raise RuleEvaluationError(f"unable to parse time: {text}")


def _compare(operator: str, left: Any, right: Any, kind: str) -> bool:
    comparison = _COMPARISONS.get(operator)
    if comparison is None:
        raise RuleEvaluationError(f"unsupported operator '{operator}' for {kind}")
    return comparison(left, right)


def _match_text(operator: str, text: str, value: str, kind: str) -> bool:
    if operator in (OP_CONTAINS, ""):
        return value in text
    if operator == OP_EQUAL:
        return text == value
    if operator == OP_NOT_EQUAL:
        return text != value
    if operator == OP_STARTS_WITH:
        return text.startswith(value)
    if operator == OP_ENDS_WITH:
        return text.endswith(value)
    if operator == OP_MATCHES:
        try:
            return re.search(value, text) is not None
        except re.error as exc:
            raise RuleEvaluationError(f"invalid regex pattern '{value}': {exc}") from exc
    raise RuleEvaluationError(f"unsupported operator '{operator}' for {kind}")


def _name_pattern(condition: Condition, file: File, base_dir: str) -> bool:
    return _match_text(condition.operator, _base_name(file.path), condition.value, "name_pattern")


def _extension_condition(condition: Condition, file: File, base_dir: str) -> bool:
    ext = _extension(file.path).lower()
    expected = condition.value.lower()
    if not expected.startswith("."):
        expected = "." + expected
    if condition.operator in (OP_EQUAL, ""):
        return ext == expected
    if condition.operator == OP_NOT_EQUAL:
        return ext != expected
    raise RuleEvaluationError(f"unsupported operator '{condition.operator}' for extension")


def _size(condition: Condition, file: File, base_dir: str) -> bool:
    try:
        target = parse_size(condition.value)
    except RuleEvaluationError as exc:
        raise RuleEvaluationError(f"invalid size value '{condition.value}': {exc}") from exc
    return _compare(condition.operator, file.size, target, "size")


def _age(condition: Condition, file: File, base_dir: str) -> bool:
    try:
        target = parse_duration(condition.value)
    except RuleEvaluationError as exc:
        raise RuleEvaluationError(f"invalid age value '{condition.value}': {exc}") from exc
    age = datetime.now(timezone.utc) - _as_utc(file.modified_at)
    return _compare(condition.operator, age, target, "age")


def _modified(condition: Condition, file: File, base_dir: str) -> bool:
    try:
        target = parse_time(condition.value)
    except RuleEvaluationError as exc:
        raise RuleEvaluationError(f"invalid modified value '{condition.value}': {exc}") from exc
    return _compare(condition.operator, _as_utc(file.modified_at), target, "modified")


def _path(condition: Condition, file: File, base_dir: str) -> bool:
    path = file.path
    if base_dir and path.startswith(base_dir):
        path = path[len(base_dir):]
        if path.startswith("/"):
            path = path[1:]
    return _match_text(condition.operator, path, condition.value, "path")


def _file_type(condition: Condition, file: File, base_dir: str) -> bool:
    ext = _extension(file.path).lower()
    target = condition.value.lower()
    equal = condition.operator in (OP_EQUAL, "")
    not_equal = condition.operator == OP_NOT_EQUAL

    extensions = _FILE_TYPES.get(target)
    if extensions is not None and (equal or not_equal):
        return (ext in extensions) == equal
    if target.startswith(".") and (equal or not_equal):
        return (ext == target) == equal
    raise RuleEvaluationError(f"unknown file type: {condition.value}")


def _mime_type(condition: Condition, file: File, base_dir: str) -> bool:
    """Match the MIME type guessed from the file name; "image/*" matches a family."""
    guessed, _ = mimetypes.guess_type(file.path, strict=False)
    mime = (guessed or "").lower()
    expected = condition.value.lower()
    if condition.operator in (OP_EQUAL, "", OP_NOT_EQUAL):
        if expected.endswith("/*"):
            matched = mime.startswith(expected[:-1])
        else:
            matched = mime == expected
        return matched != (condition.operator == OP_NOT_EQUAL)
    return _match_text(condition.operator, mime, expected, "mime_type")


_HANDLERS: dict[ConditionType, Callable[[Condition, File, str], bool]] = {
    ConditionType.NAME_PATTERN: _name_pattern,
    ConditionType.EXTENSION: _extension_condition,
    ConditionType.SIZE: _size,
    ConditionType.AGE: _age,
    ConditionType.MODIFIED: _modified,
    ConditionType.PATH: _path,
    ConditionType.FILE_TYPE: _file_type,
    ConditionType.MIME_TYPE: _mime_type,
}


class Evaluator:
    """Decides whether files match rules."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def evaluate_rule(self, rule: Rule, file: File, base_dir: str = "") -> bool:
        """True when the rule is enabled and every one of its conditions holds."""
        if not rule.enabled:
            return False
        for condition in rule.conditions:
            try:
                matches = self.evaluate_condition(condition, file, base_dir)
            except RuleEvaluationError as exc:
                raise RuleEvaluationError(f"failed to evaluate condition: {exc}") from exc
            if not matches:
                if self.verbose:
                    print(
                        f"File {file.path} does not match condition: "
                        f"{condition.type} {condition.operator} {condition.value}"
                    )
                return False
        return True

    def evaluate_condition(self, condition: Condition, file: File, base_dir: str = "") -> bool:
        """Evaluate one condition; raises RuleEvaluationError when it cannot."""
        try:
            kind = ConditionType(condition.type)
        except ValueError:
            raise RuleEvaluationError(
                f"unsupported condition type: {condition.type}"
            ) from None
        return _HANDLERS[kind](condition, file, base_dir)