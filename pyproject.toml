[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "targeting-engine"
version = "0.1.0"
description = "HTTP service that selects advertising campaigns for a request by app, country and operating system"
requires-python = ">=3.10"
keywords = ["advertising", "campaigns", "targeting", "elasticsearch", "redis", "flask", "prometheus"]
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
    "Framework :: Flask",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "flask",
    "redis",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
targeting-engine = "targeting_engine.main:main"

[tool.hatch.build.targets.wheel]
packages = ["targeting_engine"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
