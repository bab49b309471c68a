[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "barekernel"
version = "0.1.0"
description = "A small teaching kernel modelled in Python: BMFS disk images, module packing, allocators, scheduler, semaphores, pipes and a shell parser."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "kernel",
    "operating-system",
    "bmfs",
    "buddy-allocator",
    "free-list",
    "scheduler",
    "semaphores",
    "pipes",
    "education",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System",
    "Topic :: System :: Filesystems",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
bmfs = "barekernel.bmfs:main"
modulepacker = "barekernel.modulepacker:main"

[tool.hatch.build.targets.wheel]
packages = ["barekernel"]

[tool.hatch.build.targets.sdist]
include = ["barekernel", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
