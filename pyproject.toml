[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "qasm-emu"
version = "0.1.0"
description = "Resolver and state-vector emulator for a small quantum assembly language with classical instructions"
requires-python = ">=3.10"
keywords = ["quantum", "assembly", "emulator", "state-vector", "qubits"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Scientific/Engineering :: Physics",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["qasm_emu"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
