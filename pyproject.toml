[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minifly"
version = "0.1.3"
description = "Local development simulator for a machines platform: API client, LiteFS management, internal DNS and a command line"
requires-python = ">=3.11"
keywords = ["fly", "development", "local", "litefs", "simulator", "machines", "dns"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
]
dependencies = [
    "httpx",
    "pyyaml",
    "platformdirs",
    "tomli-w",
    "starlette",
    "uvicorn",
    "termcolor",
    "tabulate",
]

[project.optional-dependencies]
test = [
    "pytest",
    "respx",
]

[project.scripts]
minifly = "minifly.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["minifly"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
