[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sbomformats"
version = "0.1.0"
description = "Encoders and decoders for software bill of materials documents: syft JSON, GitHub dependency snapshots and plain tables"
requires-python = ">=3.10"
dependencies = []
keywords = ["sbom", "software bill of materials", "packages", "dependencies", "json", "purl"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["sbomformats"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
