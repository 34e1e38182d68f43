[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "crcarith"
version = "0.1.0"
description = "CRC-checked arithmetic over TCP or UDP: client, error-injecting middle man and server"
requires-python = ">=3.10"
dependencies = []
keywords = ["crc", "crc32", "tcp", "udp", "error-detection", "networking", "sockets"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
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

[project.scripts]
crcarith-server = "crcarith.server:main"
crcarith-middle-man = "crcarith.middle_man:main"
crcarith-client = "crcarith.client:main"

[tool.hatch.build.targets.wheel]
packages = ["crcarith"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
