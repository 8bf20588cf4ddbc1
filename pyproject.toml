[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "telemetry_store"
version = "0.1.0"
description = "Telemetry collector that stores metric events in hourly SQLite files and serves per-hour statistics over HTTP"
requires-python = ">=3.10"
keywords = ["telemetry", "metrics", "monitoring", "sqlite", "statistics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
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
]
dependencies = [
    "aiohttp>=3.8",
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "pytest-asyncio>=0.21",
]

[project.scripts]
telemetry-store = "telemetry_store.main:main"

[tool.hatch.build.targets.wheel]
packages = ["telemetry_store"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
