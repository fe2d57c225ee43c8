[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "zvbkit"
version = "0.1.0"
description = "Q31 fixed-point signals and PID control, with a UDP bus for actuators, LEDs, buttons and sensors"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "control-system",
    "pid",
    "fixed-point",
    "q31",
    "robotics",
    "sensors",
    "actuators",
    "udp",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Mathematics",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["zvbkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
