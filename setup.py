"""Setup configuration for launch-monitor."""

from setuptools import setup, find_packages

setup(
    name="launch-monitor",
    version="0.1.0",
    description="Execution monitoring and rerun coordinator for a test launcher backend",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.31.0",
        "pyyaml>=6.0",
        "click>=8.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "launch-monitor=launch_monitor.cli:main",
        ],
    },
)
