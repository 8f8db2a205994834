[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "btool"
version = "0.1.0"
description = "Directory snapshots with content-defined chunking, de-duplicated pack storage, restore and pruning."
requires-python = ">=3.10"
dependencies = []
keywords = ["backup", "snapshot", "deduplication", "content-addressed", "rabin", "chunking"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Backup",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
btool = "btool.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["btool"]

[tool.pytest.ini_options]
addopts = "-ra"
