[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "easyfs"
version = "0.1.0"
description = "A small block-based file system with a block cache, inode layer, open-file handles and image packer"
requires-python = ">=3.10"
keywords = ["filesystem", "block-device", "inode", "disk-image", "bitmap", "sv39"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
easyfs-pack = "easyfs.packer:main"

[tool.hatch.build.targets.wheel]
packages = ["easyfs"]

[tool.pytest.ini_options]
addopts = "-ra"
