[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vaultshare"
version = "0.1.0"
description = "End-to-end encrypted file storage and sharing over an untrusted key-value store"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = [
    "encryption",
    "file-sharing",
    "hmac",
    "digital-signatures",
    "access-control",
    "revocation",
]
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
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["vaultshare"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
