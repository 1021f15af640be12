"""Setup file for development installation."""

from setuptools import setup, find_packages

setup(
    name="chat-gateway",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "structlog>=23.2",
        "prometheus-client>=0.19",
        "opentelemetry-instrumentation-fastapi>=0.43b0",
        "sse-starlette>=2.0",
        "openai>=1.30",
        "anthropic>=0.25",
        "google-ai-generativelanguage>=0.6",
        "google-api-core>=2.15",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
)
