"""
Setup script for company-scout.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="company-scout",
    version="0.1.0",
    packages=find_packages(include=["scout", "scout.*"]),
    python_requires=">=3.11",
    install_requires=[
        "langchain-openai>=0.1.0",
        "langchain-core>=0.2.0",
        "pydantic>=2.0",
        "tenacity>=8.2",
        "pymongo>=4.6",
        "firecrawl-py>=1.0",
        "python-dotenv>=1.0",
        "json-repair>=0.25",
        "requests>=2.31",
        "beautifulsoup4>=4.12",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-mock>=3.12",
            "pytest-asyncio>=0.23",
        ],
    },
)
