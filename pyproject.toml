[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "serverkit"
version = "0.1.0"
description = "Building blocks for event-driven network servers: timer containers, a thread pool, a small HTTP connection handler and example servers."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "server",
    "networking",
    "timers",
    "time-wheel",
    "thread-pool",
    "http",
    "signals",
    "select",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
serverkit-http = "serverkit.http_server:main"
serverkit-signals = "serverkit.signal_pipe:main"
serverkit-idle = "serverkit.idle_server:main"
serverkit-connect = "serverkit.connect:main"
serverkit-oob = "serverkit.oob_server:main"
serverkit-passfd = "serverkit.fd_passing:main"
serverkit-sem = "serverkit.binary_sem:main"
serverkit-talk = "serverkit.shm_talk:main"
serverkit-sigthread = "serverkit.signal_thread:main"

[tool.hatch.build.targets.wheel]
packages = ["serverkit"]

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
warn_redundant_casts = true
