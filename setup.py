"""
natchat - Peer-to-peer UDP chat through NAT
Rendezvous introducer plus UDP hole punching
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="natchat",
    version="0.1.0",
    description="Peer-to-peer UDP chat with a rendezvous introducer and NAT hole punching",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["natchat", "natchat.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Communications :: Chat",
        "Topic :: System :: Networking",
    ],
    python_requires=">=3.11",
    install_requires=[
        "click>=8.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "natchat=natchat.cli:main",
        ],
    },
)
