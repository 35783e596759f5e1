"""
ZodGen - Zod validator generator for PostgreSQL metadata
Install: pip install -e .
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="zodgen",
    version="1.0.0",
    author="Diegoproggramer",
    author_email="",
    description="⚡ Generate Zod v4 validators from PostgreSQL metadata",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/Diegoproggramer/zodgen",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Code Generators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "zodgen=zodgen.cli:cli_main",
        ],
    },
    keywords="zod, typescript, postgresql, generator, validation, code-generator",
    project_urls={
        "Bug Reports": "https://github.com/Diegoproggramer/zodgen/issues",
        "Source": "https://github.com/Diegoproggramer/zodgen",
    },
)
