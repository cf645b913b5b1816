[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "neonova"
version = "0.1.0"
description = "Simulated operating-system services: a bytecode VM with per-architecture backends, process and app management, drivers, a copy-on-write filesystem, and power and resource monitoring."
requires-python = ">=3.10"
dependencies = [
    "cryptography",
    "psutil",
]
keywords = ["operating-system", "simulation", "bytecode", "virtual-machine", "jit", "filesystem", "drivers"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System",
    "Topic :: Software Development :: Interpreters",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["neonova"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
