[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "geeweb"
version = "0.1.0"
description = "A small WSGI web framework with trie routing, route groups, middleware and template rendering"
requires-python = ">=3.10"
dependencies = [
    "jinja2",
]
keywords = ["wsgi", "web", "framework", "router", "middleware", "trie"]
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
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
geeweb-demo = "geeweb.apps:main"

[tool.hatch.build.targets.wheel]
packages = ["geeweb"]

[tool.hatch.build.targets.sdist]
include = ["geeweb", "tests"]

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
