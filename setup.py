from setuptools import setup, find_packages

setup(
    name="cache-ratelimiter",
    version="0.1.0",
    packages=find_packages(include=["ratelimiter", "ratelimiter.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "redis>=5.0",
        "fastapi>=0.100",
        "starlette",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
)
