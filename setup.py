#!/usr/bin/env python
"""
PyOverlap Setup Script
Plain setuptools setup; the package is pure Python
"""

import re
from pathlib import Path
from setuptools import setup, find_packages

#
BASEDIR = Path(__file__).parent.absolute()


def _get_version():
    """
    Read VERSION from the package without importing it,
    so that setup works before the dependencies are installed.
    """
    init = (BASEDIR / "PyOverlap" / "__init__.py").read_text()
    match = re.search(r'^VERSION = "([^"]+)"', init, re.M)
    if match is None:
        raise RuntimeError("VERSION not found in PyOverlap/__init__.py")
    return match.group(1)


def _setup():
    setup(
        name="PyOverlap",
        version=_get_version(),
        description="Annotation overlap and enrichment analysis with permutation-based null distributions",
        packages=find_packages(include=["PyOverlap", "PyOverlap.*"]),
        python_requires=">=3.8",
        install_requires=[
            "numpy>=1.17",
            "typing_extensions; python_version < '3.11'",
        ],
        extras_require={
            "test": ["pytest", "pytest-cov"],
        },
        classifiers=[
            "Programming Language :: Python :: 3",
            "Topic :: Scientific/Engineering :: Bio-Informatics",
        ],
    )


if __name__ == "__main__":
    _setup()
