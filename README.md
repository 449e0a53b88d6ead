# fman

`fman` is a Python library for keeping an index of the files on your machine
and tidying them up with rules you write yourself.

It covers three areas:

* **Scanning** (`fman.scanner`) – walk a directory tree, compute a SHA-256
  hash for every file and record path, name, size and modification time in a
  SQLite database. System, trash and shallow hidden directories are skipped
  (`fman.paths`).
* **Searching** (`fman.database`) – query the index by name, size range,
  modification date, directory and extension, or list every file that has a
  hash.
* **Rules** (`fman.rule_types`, `fman.evaluator`, `fman.executor`,
  `fman.manager`) – describe files by conditions and say what to do with them
  (move, copy, delete, rename, symlink). Rules are kept in a YAML file and can
  be run as a dry run first.

## Installation

```
pip install .
```

Python 3.10 or later is required. The only runtime dependency is PyYAML.

## Scanning a directory

```python
from fman.database import Database
from fman.scanner import FileScanner, ScanOptions

scanner = FileScanner(Database(None))
stats = scanner.scan_directory("/path/to/photos", ScanOptions(verbose=True), None)
print(stats.files_indexed, "files indexed")
print(stats.directories_skipped, "directories skipped")
print(stats.permission_errors, "permission errors")
```

`Database(None)` opens `~/.fman/fman.db` when the scan starts, creating the
directory and table if needed, and the scanner closes it when it is done. Any
object with `init_db()`, `upsert_file(file)` and `close()` can stand in for
the database.

`ScanOptions` fields:

* `verbose` – print more detail while scanning.
* `throttle_delay` – seconds to wait before every hundredth file.
* `max_file_size` – when positive, larger files are indexed without hashing
  (their hash is recorded as `large_file_skipped`).
* `skip_patterns` – a list of patterns to use instead of the platform's own
  (`fman.paths.get_skip_patterns()`).
* `force_sudo` – carried in the options; the scanner itself does not act on it.

Pass a `threading.Event` as the third argument to stop a scan from another
thread; a stopped scan raises `ScanCancelled`. Other failures, such as a
missing root directory or a database that cannot be opened, raise `ScanError`.
Permission problems on single entries are counted and skipped.

`fman.scanner.calculate_file_hash(path)` returns the SHA-256 hex digest of a
file on its own.

## Searching the index

```python
from fman.database import Database, SearchCriteria

with Database(None) as db:
    for f in db.find_files_by_advanced_criteria(
        SearchCriteria(name_pattern="report", min_size=1024, file_types=[".pdf"])
    ):
        print(f.path, f.size)
```

`Database` also offers `find_files_by_name(pattern)` (a case-insensitive
substring match on the name for ASCII), `find_files_with_hashes(search_dir,
min_size)` and `upsert_file(file)`. You can pass an open `sqlite3.Connection`
instead of `None`; the table is then expected to exist already
(`fman.database.SCHEMA` holds its definition). Advanced searches are returned
newest modification first.

## Rules

Rules live in `rules.yml` inside a configuration directory of your choice:

```yaml
version: "1.0"
rules:
  - name: archive-old-screenshots
    enabled: true
    conditions:
      - type: name_pattern
        operator: contains
        value: Screenshot
      - type: age
        operator: ">"
        value: 30d
    actions:
      - type: move
        destination: ~/Pictures/Archive/Screenshots/
```

They are managed and run from Python:

```python
from fman.database import File
from fman.evaluator import Evaluator
from fman.executor import Executor
from fman.manager import RuleManager

manager = RuleManager("/home/me/.fman")
manager.load_rules()                  # creates an empty rules.yml if missing
manager.create_example_rules()        # adds two disabled example rules

evaluator = Evaluator(False)
executor = Executor(True, True, False)  # dry run, verbose, no prompts
some_file = File(path="/home/me/Desktop/Screenshot 1.png", name="Screenshot 1.png")
for rule in manager.enabled_rules:
    if evaluator.evaluate_rule(rule, some_file, "/home/me"):
        result = executor.execute_rule(rule, some_file, "/home/me")
        print(result.success, [a.destination for a in result.actions])
```

`RuleManager` also has `add_rule`, `update_rule`, `remove_rule`,
`enable_rule`, `disable_rule`, `get_rule` and `validate_rule`; every change is
saved at once. Problems raise `RuleError`. Conditions that cannot be
evaluated raise `RuleEvaluationError`; failed actions are reported in the
returned `ExecutionResult` rather than raised.

### Conditions

| type           | operators                                   | value                         |
|----------------|---------------------------------------------|-------------------------------|
| `name_pattern` | `contains` (default), `==`, `!=`, `starts_with`, `ends_with`, `matches` | text or regular expression |
| `path`         | as `name_pattern`; relative to the base directory when under it | text or regular expression |
| `extension`    | `==` (default), `!=`                        | `.txt` or `txt`               |
| `size`         | `>` (default), `<`, `>=`, `<=`, `==`, `!=`  | `500`, `1.5K`, `100M`, `1G`, `2T` (binary units) |
| `age`          | as `size`                                   | `30s`, `10m`, `2h`, `7d`, `1w`, `1y` |
| `modified`     | as `size`                                   | date or relative time         |
| `file_type`    | `==` (default), `!=`                        | `image`, `video`, `audio`, `document`, `archive`, `code`, or an extension |
| `mime_type`    | `==` (default), `!=`, and the text operators | MIME type guessed from the file name; `image/*` matches a family |

Dates for `modified` can be written as `2024-01-31`, `2024-01-31 12:00:00`,
`2024-01-31T12:00:00Z` or `2024-01-31T12:00:00+02:00` (times without a zone
are taken as UTC), or relative to now as `+7d` or `-1w`. The helpers
`parse_size`, `parse_duration` and `parse_time` in `fman.evaluator` are
available on their own.

### Actions

`move`, `copy` and `link` need a `destination` or a `template`; a destination
ending in `/` receives the file under its own name, and `~/` is expanded to
the home directory. `rename` gives the file a new name in its own directory.
`delete` removes the file. `backup: true` copies the file to
`<path>.backup.<YYYYMMDD-HHMMSS>` first (move, rename, delete), and
`confirm: true` asks on the terminal before acting unless it is a dry run.
An existing destination is never overwritten.

Templates may use `{filename}`, `{basename}`, `{ext}`, `{dir}`, `{size}`,
`{year}`, `{month}`, `{day}`, `{date}` and `{timestamp}`, taken from the
file's path, size and modification time (`fman.executor.resolve_template`).

## Elevated scans

`fman.permissions.run_with_sudo(args, verbose)` asks for confirmation and then
runs the current program again as `sudo <program> scan <args> [--verbose]`.
It is not available on Windows. `is_running_as_root()` and
`is_permission_error(err)` are the checks the scanner uses.

## What this package does not do

There is no command-line program and no background service: scanning,
searching and running rules are all done by calling the library from Python.
There is no duplicate-file report either; `find_files_with_hashes` gives the
records from which one could be built.

## Running the tests

```
pip install ".[test]"
pytest
```