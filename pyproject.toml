[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hmc"
version = "0.1.0"
description = "Admission validation and template distribution logic for managed Kubernetes clusters"
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "admission", "webhook", "cluster-api", "templates", "helm", "label-selector"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["hmc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
