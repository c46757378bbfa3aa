[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hallwayleds"
version = "0.1.0"
description = "Drive WS2801/APA102 LED stripes from infrared distance sensors read through MCP3008 ADCs"
requires-python = ">=3.10"
keywords = ["led", "ws2801", "apa102", "mcp3008", "spi", "gpio", "sensor", "nightlight"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
hallwayleds = "hallwayleds.app:main"

[tool.hatch.build.targets.wheel]
packages = ["hallwayleds"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
