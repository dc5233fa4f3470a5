[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "samplesplit"
version = "0.1.0"
description = "Sample buffers, slicing with cross fading, waveform analysis and sample file handling for audio sample splitting"
requires-python = ">=3.10"
keywords = ["audio", "sample", "slicer", "waveform", "resample", "wav", "aiff"]
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
    "Topic :: Multimedia :: Sound/Audio :: Editors",
    "Typing :: Typed",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["samplesplit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
