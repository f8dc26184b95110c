[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rexstore"
version = "0.1.0"
description = "An in-memory key-value store whose nodes replicate data to each other by gossip over TCP"
requires-python = ">=3.11"
dependencies = []
keywords = [
    "key-value",
    "gossip",
    "distributed",
    "replication",
    "lamport-clock",
    "last-writer-wins",
    "asyncio",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
rexstore = "rexstore.cli:main"
rexstore-client = "rexstore.client_cli:main"

[tool.hatch.build.targets.wheel]
packages = ["rexstore"]

[tool.hatch.build.targets.sdist]
include = ["rexstore", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
