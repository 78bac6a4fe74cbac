[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "localact"
version = "0.1.0"
description = "Building blocks for running CI workflow jobs locally: contexts, matrix expansion, terminal drawing, an artifact server and command-line configuration helpers."
requires-python = ">=3.10"
keywords = ["ci", "workflow", "actions", "artifacts", "matrix", "dotenv"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["localact"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
