"""
execman - manage executables published as GitHub release assets
A Python 3.9+ command-line tool for installing, checking and updating
single-binary tools from GitHub releases
"""

from setuptools import setup, find_packages

setup(
    name="execman",
    version="0.1.0",
    description="Manage executables published as GitHub release assets",
    author="execman contributors",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "requests>=2.31.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "execman=execman.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: System :: Installation/Setup",
        "Topic :: System :: Software Distribution",
    ],
)
