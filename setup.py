"""Setup script for the process descriptor tooling."""

from setuptools import setup, find_packages

setup(
    name="process-descriptors",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["ecosystem_main"],
    install_requires=[
        "psutil>=5.9.0",
        "pyyaml>=6.0.1",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "ecosystem=ecosystem_main:main",
        ],
    },
    python_requires=">=3.8",
)
