# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the Storyflow workflow node execution engine
"""

from setuptools import setup, find_packages

setup(
    name="storyflow-engine",
    version="1.0.0",
    description="Node execution engine for LLM-driven creative writing workflows",
    author="Jason Cafarelli",
    package_dir={"": "backend"},
    packages=find_packages(where="backend", exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.5.0",
        "httpx>=0.25.0",
        "anthropic>=0.40.0",
        "openai>=1.50.0",
        "google-genai>=1.0.0",
        "pyyaml>=6.0",
        "aiofiles>=23.2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ]
    },
)
