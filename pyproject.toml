[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mimic"
version = "0.1.0"
description = "One-way directory mirroring with a persistent sync state and dry-run reports"
requires-python = ">=3.10"
dependencies = []
keywords = ["sync", "mirror", "backup", "directory", "files"]
classifiers = [
    "Development Status :: 3 - Alpha",
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
    "Topic :: System :: Archiving :: Mirroring",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mimic = "mimic.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["mimic"]

[tool.pytest.ini_options]
addopts = "-ra"
