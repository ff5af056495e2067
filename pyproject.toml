[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "seriesjuggle"
version = "0.1.0"
description = "Time series containers, transforms, custom functions and CSV/ULog loaders"
requires-python = ">=3.10"
dependencies = []
keywords = ["timeseries", "ulog", "csv", "signal", "transforms"]
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
    "Topic :: Scientific/Engineering :: Visualization",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["seriesjuggle"]

[tool.pytest.ini_options]
addopts = "-ra"
