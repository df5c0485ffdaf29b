[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "livecast"
version = "0.1.0"
description = "Live-room server and console client speaking a small binary packet protocol"
requires-python = ">=3.10"
dependencies = []
keywords = ["live streaming", "chat", "rooms", "binary protocol", "asyncio"]
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
    "Framework :: AsyncIO",
    "Environment :: Console",
    "Topic :: Communications :: Conferencing",
    "Topic :: Communications :: Chat",
]

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[project.scripts]
livecast-server = "livecast.server:main"
livecast-lobby = "livecast.lobby:main"

[tool.hatch.build.targets.wheel]
packages = ["livecast"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
