[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ordermesh"
version = "0.1.0"
description = "Business logic for an order management system: orders, stock, payments and kitchen, linked by a message broker and service discovery."
requires-python = ">=3.10"
keywords = [
    "orders",
    "order-management",
    "microservices",
    "rabbitmq",
    "amqp",
    "service-discovery",
    "payments",
    "stock",
    "webhook",
]
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
    "Topic :: Office/Business",
    "Typing :: Typed",
]
dependencies = [
    "pika",
    "pymongo",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["ordermesh"]

[tool.hatch.build.targets.sdist]
include = [
    "ordermesh",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
