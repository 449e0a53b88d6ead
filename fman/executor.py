"""Execution of rule actions (move, copy, delete, rename, link) on files."""

from __future__ import annotations

import os
import shutil
from datetime import datetime

from fman.database import File
from fman.rule_types import Action, ActionResult, ActionType, ExecutionResult, Rule

_SEPARATORS = os.sep + (os.altsep or "")
_COPY_CHUNK = 64 * 1024


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


def _dir_name(path: str) -> str:
    directory = os.path.dirname(path)
    return os.path.normpath(directory) if directory else "."


def _join(*parts: str) -> str:
    """Join non-empty parts and normalise the result; "" when nothing is left."""
    present = [part for part in parts if part]
    if not present:
        return ""
    return os.path.normpath(os.path.join(*present))


def _failure(message: str, cause: BaseException) -> RuntimeError:
    error = RuntimeError(f"{message}: {cause}")
    error.__cause__ = cause
    return error


def resolve_template(template: str, file: File) -> str:
    """Replace {filename}, {basename}, {ext}, {dir}, {size} and date placeholders."""
    moment = file.modified_at
    year = f"{moment.year:04d}"
    month = f"{moment.month:02d}"
    day = f"{moment.day:02d}"
    ext = _extension(file.path)
    filename = _base_name(file.path)
    basename = filename[: -len(ext)] if ext and filename.endswith(ext) else filename
    replacements = {
        "{filename}": filename,
        "{basename}": basename,
        "{ext}": ext,
        "{dir}": _dir_name(file.path),
        "{size}": str(file.size),
        "{year}": year,
        "{month}": month,
        "{day}": day,
        "{date}": f"{year}-{month}-{day}",
        "{timestamp}": (
            f"{year}{month}{day}-"
            f"{moment.hour:02d}{moment.minute:02d}{moment.second:02d}"
        ),
    }
    result = template
    for placeholder, value in replacements.items():
        result = result.replace(placeholder, value)
    return result


def copy_file(src: str, dst: str) -> None:
    """Copy a file's contents and permission bits, replacing dst if present."""
    with open(src, "rb") as source, open(dst, "wb") as target:
        shutil.copyfileobj(source, target, _COPY_CHUNK)
    shutil.copymode(src, dst)


def validate_action_type(action_type: ActionType | str) -> bool:
    """Tell whether the action type is one the executor knows."""
    try:
        ActionType(action_type)
    except ValueError:
        return False
    return True


def _ask(prompt: str) -> str:
    try:
        return input(prompt)
    except EOFError:
        return ""


class Executor:
    """Runs the actions of rules on files, optionally as a dry run."""

    def __init__(self, dry_run: bool = False, verbose: bool = False, confirm: bool = False) -> None:
        self.dry_run = dry_run
        self.verbose = verbose
        self.confirm = confirm

    @property
    def settings(self) -> tuple[bool, bool, bool]:
        """The (dry_run, verbose, confirm) flags."""
        return self.dry_run, self.verbose, self.confirm

    def _say(self, message: str) -> None:
        if self.verbose:
            print(message)

    def execute_rule(self, rule: Rule, file: File, base_dir: str = "") -> ExecutionResult:
        """Run every action of the rule on the file, stopping at the first failure."""
        result = ExecutionResult(rule=rule, file=file, actions=[], success=True)
        self._say(f"Executing rule '{rule.name}' on file: {file.path}")

        for action in rule.actions:
            action_result = self.execute_action(action, file, base_dir)
            result.actions.append(action_result)
            if not action_result.success and not action_result.skipped:
                result.success = False
                result.error = action_result.error
                self._say(f"Action failed: {action_result.error}")
                break
        return result

    def execute_action(self, action: Action, file: File, base_dir: str = "") -> ActionResult:
        """Run one action; failures are reported in the result, not raised."""
        if (action.confirm or self.confirm) and not self.dry_run:
            if not self._ask_confirmation(action, file):
                return ActionResult(
                    action=action,
                    source=file.path,
                    skipped=True,
                    skip_reason="user cancelled",
                )

        try:
            kind = ActionType(action.type)
        except ValueError:
            return ActionResult(
                action=action,
                source=file.path,
                error=ValueError(f"unsupported action type: {action.type}"),
            )

        handlers = {
            ActionType.MOVE: self._move,
            ActionType.COPY: self._copy,
            ActionType.DELETE: self._delete,
            ActionType.RENAME: self._rename,
            ActionType.LINK: self._link,
        }
        return handlers[kind](action, file)

    def resolve_destination(self, action: Action, file: File) -> str:
        """Work out where an action sends the file.

        Raises RuntimeError when a "~/" path is used and no home directory is known.
        """
        destination = (
            resolve_template(action.template, file) if action.template else action.destination
        )

        if destination.startswith("~/"):
            home = os.path.expanduser("~")
            if home == "~":
                raise RuntimeError("failed to get home directory")
            destination = _join(home, destination[2:])

        if destination.endswith(("/", "\\")):
            destination = _join(destination, _base_name(file.path))
        return destination

    def _resolve(self, action: Action, file: File, result: ActionResult) -> bool:
        try:
            result.destination = self.resolve_destination(action, file)
        except (OSError, RuntimeError) as exc:
            result.error = _failure("failed to resolve destination", exc)
            return False
        return True

    def _backup(self, action: Action, file: File, result: ActionResult) -> bool:
        if not action.backup:
            return True
        try:
            self._create_backup(file.path)
        except OSError as exc:
            result.error = _failure("failed to create backup", exc)
            return False
        return True

    def _prepare_target(self, result: ActionResult) -> bool:
        try:
            os.makedirs(_dir_name(result.destination), mode=0o755, exist_ok=True)
        except OSError as exc:
            result.error = _failure("failed to create destination directory", exc)
            return False
        return self._target_free(result)

    @staticmethod
    def _target_free(result: ActionResult) -> bool:
        if os.path.exists(result.destination):
            result.error = FileExistsError(f"destination already exists: {result.destination}")
            return False
        return True

    def _move(self, action: Action, file: File) -> ActionResult:
        result = ActionResult(action=action, source=file.path)
        if not self._resolve(action, file, result):
            return result
        if self.dry_run:
            self._say(f"DRY RUN: Would move {file.path} to {result.destination}")
            result.success = True
            return result
        if not self._backup(action, file, result) or not self._prepare_target(result):
            return result
        try:
            os.rename(file.path, result.destination)
        except OSError as exc:
            result.error = _failure("failed to move file", exc)
            return result
        self._say(f"Moved {file.path} to {result.destination}")
        result.success = True
        return result

    def _copy(self, action: Action, file: File) -> ActionResult:
        result = ActionResult(action=action, source=file.path)
        if not self._resolve(action, file, result):
            return result
        if self.dry_run:
            self._say(f"DRY RUN: Would copy {file.path} to {result.destination}")
            result.success = True
            return result
        if not self._prepare_target(result):
            return result
        try:
            copy_file(file.path, result.destination)
        except OSError as exc:
            result.error = _failure("failed to copy file", exc)
            return result
        self._say(f"Copied {file.path} to {result.destination}")
        result.success = True
        return result

    def _delete(self, action: Action, file: File) -> ActionResult:
        result = ActionResult(action=action, source=file.path, destination="")
        if self.dry_run:
            self._say(f"DRY RUN: Would delete {file.path}")
            result.success = True
            return result
        if not self._backup(action, file, result):
            return result
        try:
            os.remove(file.path)
        except OSError as exc:
            result.error = _failure("failed to delete file", exc)
            return result
        self._say(f"Deleted {file.path}")
        result.success = True
        return result

    def _rename(self, action: Action, file: File) -> ActionResult:
        result = ActionResult(action=action, source=file.path)
        new_name = resolve_template(action.template, file) if action.template else action.destination
        result.destination = _join(_dir_name(file.path), new_name)
        if self.dry_run:
            self._say(f"DRY RUN: Would rename {file.path} to {result.destination}")
            result.success = True
            return result
        if not self._target_free(result) or not self._backup(action, file, result):
            return result
        try:
            os.rename(file.path, result.destination)
        except OSError as exc:
            result.error = _failure("failed to rename file", exc)
            return result
        self._say(f"Renamed {file.path} to {result.destination}")
        result.success = True
        return result

    def _link(self, action: Action, file: File) -> ActionResult:
        result = ActionResult(action=action, source=file.path)
        if not self._resolve(action, file, result):
            return result
        if self.dry_run:
            self._say(f"DRY RUN: Would create link from {result.destination} to {file.path}")
            result.success = True
            return result
        if not self._prepare_target(result):
            return result
        try:
            os.symlink(file.path, result.destination)
        except OSError as exc:
            result.error = _failure("failed to create symbolic link", exc)
            return result
        self._say(f"Created symbolic link from {result.destination} to {file.path}")
        result.success = True
        return result

    def _create_backup(self, path: str) -> None:
        backup_path = f"{path}.backup.{datetime.now().strftime('%Y%m%d-%H%M%S')}"
        self._say(f"Creating backup: {backup_path}")
        copy_file(path, backup_path)

    def _ask_confirmation(self, action: Action, file: File) -> bool:
        answer = _ask(f"Execute {action.type} action on {file.path}? (y/N): ")
        return answer.strip().lower() in ("y", "yes")