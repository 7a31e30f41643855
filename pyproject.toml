[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "loyaltymart"
version = "0.1.0"
description = "Loyalty points service: order registration, accrual tracking, balance and withdrawals over an HTTP API"
requires-python = ">=3.10"
keywords = ["loyalty", "accrual", "bonus points", "orders", "luhn", "http api", "flask", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Office/Business :: Financial",
    "Typing :: Typed",
]
dependencies = [
    "flask",
    "requests",
    "bcrypt",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["loyaltymart"]

[tool.hatch.build.targets.sdist]
include = ["loyaltymart", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
