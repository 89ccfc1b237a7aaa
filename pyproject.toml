[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "logstack"
version = "0.1.0"
description = "Building blocks for a log aggregation stack: deletion modes, expiring metric vectors, logfmt extraction, ruler config validation, chunk-ref merging, stack sizing and reconcile event filters."
requires-python = ">=3.10"
dependencies = []
keywords = ["logging", "logs", "logfmt", "metrics", "operator", "kubernetes"]
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
    "Topic :: System :: Logging",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["logstack"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
