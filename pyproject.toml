[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "decrust"
version = "0.1.1"
description = "Environment-aware backtrace capture and implicit error context data: timestamps, thread identity and source locations"
requires-python = ">=3.10"
dependencies = []
keywords = ["backtrace", "errors", "diagnostics", "debugging", "context", "stack"]
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
    "Topic :: Software Development :: Debuggers",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["decrust"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
