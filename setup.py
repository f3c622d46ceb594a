"""Packaging for thighpads (src layout, console script `thighpads`)."""

from setuptools import find_packages, setup

setup(
    name="thighpads",
    version="1.2.0",
    description="Terminal data manager: tables of notes and snippets with portable .thighpad export",
    python_requires=">=3.11",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "click>=8.1",
        "rich>=13.0",
        "textual>=0.80",
    ],
    extras_require={
        "test": ["pytest>=8.0"],
    },
    entry_points={
        "console_scripts": [
            "thighpads=thighpads.cli:main",
        ],
    },
)
