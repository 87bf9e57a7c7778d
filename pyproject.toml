[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chromeservice"
version = "0.1.0"
description = "HTTP and websocket backend for console chrome: user identities, favorites, recently visited pages, self reports, dashboard templates and notifications."
requires-python = ">=3.10"
keywords = ["dashboard", "websocket", "cloudevents", "starlette", "user-preferences"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]
dependencies = [
    "starlette",
    "uvicorn",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "httpx",
]

[project.scripts]
chromeservice = "chromeservice.app:main"

[tool.hatch.build.targets.wheel]
packages = ["chromeservice"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
