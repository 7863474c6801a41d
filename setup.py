"""Setup configuration for ncbackup."""

import os
import sys

from setuptools import find_packages, setup

# Get version from package
here = os.path.abspath(os.path.dirname(__file__))
sys.path.insert(0, here)
try:
    from ncbackup import __author__, __version__
except ImportError:
    __version__ = "0.1.0"
    __author__ = "ncbackup maintainers"

# Get the long description from the README file
with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="ncbackup",
    version=__version__,
    description="Backup orchestration for Docker-hosted Nextcloud",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author=__author__,
    keywords="nextcloud backup docker mariadb rsync cli",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"ncbackup": ["templates/*.j2"]},
    python_requires=">=3.8",
    install_requires=[
        "click>=8.0.0",
        "pyyaml>=6.0",
        "docker>=6.0.0",
        "requests>=2.26.0",
        "jinja2>=3.0.0",
        "jsonschema>=4.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.12.0",
            "mypy>=0.991",
        ],
    },
    entry_points={
        "console_scripts": [
            "ncbackup=ncbackup.cli:cli",
        ],
    },
)
