"""Walking a directory tree and indexing its files into the database."""

from __future__ import annotations

import gc
import hashlib
import os
import stat
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fman.database import File
from fman.paths import get_skip_patterns, should_skip_path
from fman.permissions import is_permission_error, is_running_as_root

_HASH_CHUNK = 32 * 1024
LARGE_FILE_HASH = "large_file_skipped"


@dataclass
class ScanStats:
    """Counts and skipped paths gathered during a scan."""

    files_indexed: int = 0
    directories_skipped: int = 0
    permission_errors: int = 0
    skipped_paths: list[str] = field(default_factory=list)


@dataclass
class ScanOptions:
    """How a scan behaves.

    throttle_delay is in seconds and is waited before every hundredth file;
    files larger than max_file_size bytes (when positive) are not hashed;
    skip_patterns defaults to the platform's patterns.
    """

    verbose: bool = False
    force_sudo: bool = False
    throttle_delay: float = 0.0
    max_file_size: int = 0
    skip_patterns: list[str] | None = None


class ScanError(Exception):
    """A scan could not be completed."""


class ScanCancelled(ScanError):
    """A scan was stopped through its cancel event."""


def calculate_file_hash(path: str | os.PathLike[str]) -> str:
    """SHA-256 of a file's contents as a lower-case hex string."""
    digest = hashlib.sha256()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(_HASH_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


@dataclass
class _ScanRun:
    stats: ScanStats
    options: ScanOptions
    patterns: list[str]
    cancel_event: threading.Event | None
    as_root: bool


class FileScanner:
    """Indexes file metadata and hashes into a database.

    The database needs init_db(), upsert_file(file) and close().
    """

    def __init__(self, database: Any) -> None:
        self.database = database

    def scan_directory(
        self,
        root_dir: str,
        options: ScanOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ScanStats:
        """Walk root_dir and index every file; the database is closed afterwards.

        Raises ScanError when the database cannot be opened or the walk fails,
        and ScanCancelled when cancel_event is set during the scan.
        """
        options = options or ScanOptions()
        try:
            self.database.init_db()
        except Exception as exc:
            raise ScanError(f"failed to initialize database: {exc}") from exc
        try:
            return self._scan(root_dir, options, cancel_event)
        finally:
            try:
                self.database.close()
            except Exception:
                # A failing close does not change the outcome of the scan.
                pass

    def _scan(
        self, root_dir: str, options: ScanOptions, cancel_event: threading.Event | None
    ) -> ScanStats:
        patterns = (
            list(options.skip_patterns)
            if options.skip_patterns is not None
            else get_skip_patterns()
        )
        run = _ScanRun(
            stats=ScanStats(),
            options=options,
            patterns=patterns,
            cancel_event=cancel_event,
            as_root=is_running_as_root(),
        )

        print(f"Starting scan of directory: {root_dir}")
        if options.verbose:
            print(f"Skip patterns: [{' '.join(patterns)}]")
        if run.as_root:
            print("🔐 Running with elevated privileges")

        try:
            try:
                root_info = os.lstat(root_dir)
            except OSError as exc:
                self._on_error(root_dir, exc, run)
            else:
                self._walk(root_dir, root_info, run)
        except ScanCancelled as exc:
            raise ScanCancelled(f"error walking the path {root_dir}: {exc}") from exc
        except OSError as exc:
            raise ScanError(f"error walking the path {root_dir}: {exc}") from exc
        return run.stats

    @staticmethod
    def _check_cancel(run: _ScanRun) -> None:
        if run.cancel_event is not None and run.cancel_event.is_set():
            raise ScanCancelled("context canceled")

    def _on_error(self, path: str, error: OSError, run: _ScanRun) -> None:
        """Count and skip permission problems; anything else ends the walk."""
        self._check_cancel(run)
        if not is_permission_error(error):
            raise error
        run.stats.permission_errors += 1
        run.stats.skipped_paths.append(path)
        if run.options.verbose:
            print(f"⚠️  Permission denied, skipping: {path}")

    def _walk(self, path: str, info: os.stat_result, run: _ScanRun) -> None:
        if self._visit(path, info, run):
            return
        if not stat.S_ISDIR(info.st_mode):
            return
        try:
            names = sorted(os.listdir(path))
        except OSError as exc:
            self._on_error(path, exc, run)
            return
        for name in names:
            child = os.path.join(path, name)
            try:
                child_info = os.lstat(child)
            except OSError as exc:
                self._on_error(child, exc, run)
                continue
            self._walk(child, child_info, run)

    def _visit(self, path: str, info: os.stat_result, run: _ScanRun) -> bool:
        """Handle one entry; True means the directory is to be skipped."""
        self._check_cancel(run)
        is_dir = stat.S_ISDIR(info.st_mode)
        if is_dir and should_skip_path(path, run.patterns):
            # Elevated verbose scans still descend into system directories.
            if not run.as_root or not run.options.verbose:
                run.stats.directories_skipped += 1
                run.stats.skipped_paths.append(path)
                if run.options.verbose:
                    print(f"⏭️  Skipping special directory: {path}")
                return True
        if not is_dir:
            self._index(path, info, run)
        return False

    def _throttle(self, run: _ScanRun) -> None:
        delay = run.options.throttle_delay
        if delay <= 0 or run.stats.files_indexed % 100 != 0:
            return
        if run.cancel_event is None:
            time.sleep(delay)
        elif run.cancel_event.wait(delay):
            raise ScanCancelled("context canceled")

    def _index(self, path: str, info: os.stat_result, run: _ScanRun) -> None:
        options = run.options
        stats = run.stats
        self._throttle(run)
        if stats.files_indexed and stats.files_indexed % 1000 == 0:
            gc.collect()

        print(f"📁 Indexing: {path}" if options.verbose else f"Indexing: {path}")

        size = info.st_size
        if options.max_file_size > 0 and size > options.max_file_size:
            file_hash = LARGE_FILE_HASH
            if options.verbose:
                print(f"⏭️  File too large for hashing: {path} ({size} bytes)")
        else:
            try:
                file_hash = calculate_file_hash(path)
            except OSError as exc:
                if is_permission_error(exc):
                    stats.permission_errors += 1
                    if options.verbose:
                        print(f"⚠️  Permission denied for file {path}, skipping")
                else:
                    print(f"Could not hash file {path}: {exc}", file=sys.stderr)
                return

        record = File(
            path=path,
            name=os.path.basename(path),
            size=size,
            modified_at=datetime.fromtimestamp(info.st_mtime).astimezone(),
            file_hash=file_hash,
        )
        try:
            self.database.upsert_file(record)
        except Exception as exc:
            # An indexing failure is reported and the scan goes on.
            print(f"Could not index file {path}: {exc}", file=sys.stderr)
        else:
            stats.files_indexed += 1