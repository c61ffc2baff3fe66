# setup.py

from setuptools import setup, find_packages
from typing import List
import os

def read_requirements(filename: str) -> List[str]:
    """Read requirements from file"""
    with open(os.path.join("requirements", filename)) as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]

setup(
    name="crm-maintenance",
    version="1.0.0",
    description="Conditional bulk query and delete tooling for the CRM document store",
    packages=find_packages(include=["src", "src.*"]),
    python_requires=">=3.11",
    install_requires=read_requirements("requirements.txt"),
    extras_require={
        "dev": read_requirements("requirements-dev.txt"),
        "test": read_requirements("requirements-test.txt"),
    },
    entry_points={
        "console_scripts": [
            "crm-maintenance=src.crm_maintenance.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: System :: Systems Administration",
    ],
)
