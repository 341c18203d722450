[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sdns"
version = "0.1.0"
description = "DNS packet encoding and decoding, a DNS answer cache with persistence, Jenkins hashing and LMO translation catalogs"
requires-python = ">=3.10"
dependencies = []
keywords = ["dns", "cache", "edns", "ecs", "jhash", "lmo", "po", "translation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Name Service (DNS)",
    "Topic :: Software Development :: Localization",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sdns-po2lmo = "sdns.po2lmo:main"

[tool.hatch.build.targets.wheel]
packages = ["sdns"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
