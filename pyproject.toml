[build-system]
requires = ["setuptools>=68"]
build-backend = "setuptools.build_meta"

[project]
name = "containerz"
version = "0.1.0"
description = "Container, image, volume and plugin operations over an injected Docker-style engine client"
requires-python = ">=3.10"
dependencies = []
keywords = ["containers", "docker", "orchestration", "plugins", "volumes"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.setuptools.packages.find]
include = ["containerz*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
