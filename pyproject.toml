[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pbwire"
version = "0.4.6"
description = "Protocol Buffers wire-format primitives: compact field descriptors, field iteration, UTF-8 checking and low-level encoding."
requires-python = ">=3.10"
dependencies = []
keywords = ["protobuf", "protocol-buffers", "serialization", "wire-format", "varint"]
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
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["pbwire"]

[tool.pytest.ini_options]
addopts = "-ra"
