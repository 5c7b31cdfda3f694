#!/usr/bin/env python3
"""Setup script for MindBoard."""

from setuptools import setup, find_packages

setup(
    name="mindboard",
    version="1.0.0",
    description="Idea maps that turn into tasks, with a GTK desktop canvas",
    author="MindBoard Project",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[],
    extras_require={
        "gui": [
            "PyGObject>=3.46.0",
            "pycairo>=1.25.0",
        ],
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mindboard=mindboard.launcher:main",
            "mindboard-cli=mindboard.cli:main",
        ],
        "gui_scripts": [
            "mindboard-gui=mindboard.launcher:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: X11 Applications :: GTK",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Topic :: Office/Business",
    ],
)
