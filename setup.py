#!/usr/bin/env python3
"""Setup script for Feed Translator."""
from setuptools import find_packages, setup

# Read version from package
with open("src/feed_translator/__init__.py", "r") as f:
    for line in f:
        if line.startswith("__version__"):
            version = line.split("=")[1].strip().strip('"').strip("'")
            break

# Read long description from README
with open("README.md", "r") as f:
    long_description = f.read()

setup(
    name="feed-translator",
    version=version,
    description="Fetch RSS/Atom feeds and republish them translated",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Feed Translator Team",
    author_email="example@example.com",
    url="https://github.com/example/feed-translator",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={"feed_translator": ["templates/*.j2"]},
    python_requires=">=3.10",
    install_requires=[
        "feedparser>=6.0.0",
        "python-dateutil>=2.8.2",
        "openai>=1.0.0",
        "python-dotenv>=1.0.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "requests>=2.28.0",
        "jinja2>=3.0.0",
        "httpx>=0.24.0",
        "beautifulsoup4>=4.11.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "feed-translator=feed_translator.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content :: News/Diary",
    ],
)
