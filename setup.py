"""Setup script for lab-run-engine package following Cosmic Python pattern."""

from setuptools import setup, find_packages

setup(
    name="lab-run-engine",
    version="1.0.0",
    description="Laboratory Test Run Engine - CBC run execution and result evaluation",
    author="Lab Run Engine Team",
    package_dir={"": "src"},
    packages=find_packages("src"),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "uvicorn[standard]",
        "pydantic",
        "httpx",
        "redis",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "pytest-cov",
            "httpx",
        ],
        "dev": [
            "black",
            "flake8",
            "mypy",
            "pre-commit",
        ],
    },
    entry_points={
        "console_scripts": [
            "lab-run-api=lab_run.entrypoints.lab_api:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Healthcare Industry",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
    ],
)
