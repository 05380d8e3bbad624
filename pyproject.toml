[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "akkonstore"
version = "1.0.0"
description = "Identifier existence store: Bloom-filter index, sharded SQLite storage and HTTP request handling"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "bloom-filter",
    "sqlite",
    "sharding",
    "identifier",
    "existence-check",
    "sha256",
    "arena-allocator",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["akkonstore"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
