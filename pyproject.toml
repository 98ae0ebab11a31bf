[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "providerkit"
version = "0.1.0"
description = "Provider-agnostic AI toolkit: request types, provider registry, tool runtime, skills and chat session memory"
requires-python = ">=3.10"
dependencies = []
keywords = ["ai", "llm", "tools", "tool-calling", "skills", "chat", "sessions"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["providerkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
