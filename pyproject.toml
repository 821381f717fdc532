[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "locationtracking"
version = "0.1.0"
description = "User location tracking: current positions, nearby search and travelled distance over HTTP and gRPC"
requires-python = ">=3.10"
keywords = ["location", "tracking", "geospatial", "mongodb", "grpc", "haversine"]
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
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "pymongo",
    "grpcio",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
location-history-management = "locationtracking.history_main:main"

[tool.hatch.build.targets.wheel]
packages = ["locationtracking"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
