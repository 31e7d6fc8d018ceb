[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rawalloc"
version = "0.1.0"
description = "Raw memory allocators, memory stacks and allocation checks over a simulated address space"
requires-python = ">=3.10"
dependencies = []
keywords = ["allocator", "memory", "memory-stack", "alignment", "virtual-memory", "leak-check"]
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
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rawalloc"]

[tool.pytest.ini_options]
addopts = "-ra"
