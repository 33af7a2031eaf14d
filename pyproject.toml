[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ext4fs"
version = "0.1.0"
description = "On-disk data structures of the ext4 filesystem: superblock, group descriptors, inodes, extents, directories and extended attributes"
requires-python = ">=3.10"
dependencies = []
keywords = ["ext4", "filesystem", "inode", "extent", "xattr", "block-device", "crc32c"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest", "hypothesis"]

[tool.hatch.build.targets.wheel]
packages = ["ext4fs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
