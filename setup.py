#!/usr/bin/env python3
"""
Setup script for the CDC streaming connector
"""

from setuptools import setup, find_namespace_packages

setup(
    name="cdc-connector",
    version="1.0.0",
    description="Client for change data capture streaming services",
    packages=find_namespace_packages(include=["cdc", "cdc.*", "shared", "shared.*"]),
    install_requires=[
        "cryptography>=43.0.1",
        "typer>=0.12.3",
        "rich>=13.9.2",
        "PyYAML>=6.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.4.2",
        ],
    },
    python_requires=">=3.9",
    entry_points={
        'console_scripts': [
            'cdc-client=cdc.cdc_cli:app',
        ],
    },
)
