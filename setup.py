from setuptools import setup, find_namespace_packages

setup(
    name="imagegate",
    version="0.1.0",
    packages=find_namespace_packages(include=["imagegate", "imagegate.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette>=0.36",
        "pydantic>=2.5",
        "pydantic-settings>=2.2",
        "httpx>=0.27",
        "uvicorn[standard]>=0.29",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "imagegate=imagegate.app.main:run",
        ],
    },
)
