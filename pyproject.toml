[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fman"
version = "0.1.0"
description = "Index files into a local SQLite database and organise them with declarative YAML rules."
requires-python = ">=3.10"
keywords = ["files", "indexing", "organize", "rules", "sqlite", "yaml"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Desktop Environment :: File Managers",
    "Topic :: System :: Filesystems",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["fman"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
