[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "x16host"
version = "0.1.0"
description = "Host-side peripherals for a Commander X16 machine: DOS view of a host directory, IEEE bus device, I2C bus, keyboard, joystick, icon and ISO-8859-15 helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["commander-x16", "emulator", "retrocomputing", "cbm-dos", "i2c", "iso-8859-15"]
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
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["x16host"]

[tool.pytest.ini_options]
addopts = "-ra"
