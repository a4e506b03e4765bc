[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "meshnet"
version = "0.1.0"
description = "Building blocks for an overlay mesh network node: timer wheels, hole punching settings, remote address lists, route parsing, a disabled tun stand-in and an admin command layer."
requires-python = ">=3.10"
dependencies = []
keywords = ["overlay", "mesh", "vpn", "routing", "timer-wheel", "networking"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["meshnet"]

[tool.hatch.build.targets.sdist]
include = ["meshnet", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
