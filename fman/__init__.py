"""Index files into SQLite and organise them with YAML-defined rules."""

__version__ = "0.1.0"
__all__ = [
    "database",
    "evaluator",
    "executor",
    "manager",
    "paths",
    "permissions",
    "rule_types",
    "scanner",
]