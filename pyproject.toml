[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "phiminerapi"
version = "1.2.4"
description = "Monitoring and control API for a mining farm: line-delimited JSON-RPC over TCP, an HTML status page, and hex, hash, logging and worker utilities"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "mining",
    "monitoring",
    "json-rpc",
    "api",
    "hashrate",
    "telemetry",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["phiminerapi"]

[tool.hatch.build.targets.sdist]
include = ["phiminerapi", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
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
