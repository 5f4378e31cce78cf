[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kestrelcache"
version = "0.1.0"
description = "A bounded in-memory cache with frequency-based admission, size-aware eviction and time-based expiration"
requires-python = ">=3.10"
keywords = ["cache", "lru", "tinylfu", "expiration", "memoization"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["kestrelcache"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
