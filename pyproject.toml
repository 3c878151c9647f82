[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "randsketch"
version = "0.1.0"
description = "Reproducible random sketching operators and sparse matrix utilities for randomized linear algebra"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "randomized linear algebra",
    "sketching",
    "philox",
    "sparse matrices",
    "total least squares",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
randsketch-tls = "randsketch.tls:main"

[tool.hatch.build.targets.wheel]
packages = ["randsketch"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
