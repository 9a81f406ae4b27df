[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "horcrux"
version = "3.0.0"
description = "Configuration, key shard files, cosigner health and nonce caching for a threshold remote signer for CometBFT validators"
requires-python = ">=3.10"
keywords = ["threshold", "signer", "validator", "cometbft", "ed25519", "cosigner", "nonce"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
horcrux = "horcrux.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["horcrux"]

[tool.pytest.ini_options]
addopts = "-ra"
