#!/usr/bin/env python3
"""Setup configuration for clock-sync package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read long description from README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="clock-sync",
    version="1.0.0",
    description="Cached world-clock synchronization with hourly calibration and offline fallback",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",

    package_dir={"": "src"},
    packages=find_packages(where="src"),

    python_requires=">=3.9",

    install_requires=[
        "httpx>=0.24.0",
        "toml>=0.10.0",
        "tzdata; platform_system == 'Windows'",
    ],

    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
        ],
    },

    entry_points={
        "console_scripts": [
            "clock-sync=clock_sync.main:main",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: System :: Networking :: Time Synchronization",
    ],

    keywords="world clock timezone time synchronization offset cache",
)
