"""Packaging for taskit."""

from setuptools import find_packages, setup

setup(
    name="taskit",
    version="0.5.0",
    description="Personal time tracking in a single versioned JSON file",
    python_requires=">=3.11",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "click>=8.1",
        "rich>=13",
    ],
    extras_require={
        "test": ["pytest>=8"],
    },
    entry_points={
        "console_scripts": [
            "taskit=taskit.cli:main",
        ],
    },
)
