[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sockdemos"
version = "0.1.0"
description = "Small TCP socket servers and clients: a static web server, a broadcast chat, a JSON REST service and a chunked file transfer with MD5 checking."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "socket",
    "tcp",
    "http",
    "chat",
    "rest",
    "file-transfer",
    "md5",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet",
    "Topic :: Communications :: Chat",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sockdemos-webserver = "sockdemos.webserver:main"
sockdemos-chat-server = "sockdemos.chat_server:main"
sockdemos-chat-client = "sockdemos.chat_client:main"
sockdemos-rest-server = "sockdemos.rest_server:main"
sockdemos-transfer-server = "sockdemos.transfer_server:main"
sockdemos-transfer-client = "sockdemos.transfer_client:main"

[tool.hatch.build.targets.wheel]
packages = ["sockdemos"]

[tool.hatch.build.targets.sdist]
include = ["sockdemos", "tests", "README.md", "pyproject.toml"]

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
warn_redundant_casts = true
