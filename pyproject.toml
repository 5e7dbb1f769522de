[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "searchchannel"
version = "0.1.0"
description = "Line-based TCP channel server for a schema-less search backend, with TOML configuration and runtime statistics"
requires-python = ">=3.11"
dependencies = []
keywords = ["search", "channel", "protocol", "tcp", "server", "configuration"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
searchchannel = "searchchannel.server:main"

[tool.hatch.build.targets.wheel]
packages = ["searchchannel"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
strict = true
