[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "stackdriver-export"
version = "0.1.0"
description = "Convert and export trace spans to Google Cloud Trace and span events to Cloud Logging, with X-Cloud-Trace-Context propagation"
requires-python = ">=3.10"
dependencies = []
keywords = ["tracing", "stackdriver", "cloud-trace", "cloud-logging", "propagation", "observability"]
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
    "Framework :: AsyncIO",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["stackdriver_export"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
