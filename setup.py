"""Setup script for k8s-image-exporter - Kubernetes image age and vulnerability metrics."""

from setuptools import setup, find_packages
from pathlib import Path
import re

# Read version from src/__init__.py (single source of truth)
init_file = Path(__file__).parent / "src" / "__init__.py"
version_match = re.search(r'__version__\s*=\s*["\']([^"\']+)["\']', init_file.read_text())
if not version_match:
    raise RuntimeError("Unable to find version string in src/__init__.py")
version = version_match.group(1)

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="k8s-image-exporter",
    version=version,
    description="Prometheus exporter for the age and ECR scan findings of images running in Kubernetes",
    long_description=long_description,
    long_description_content_type="text/markdown",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    py_modules=["cli", "config", "constants"],
    install_requires=[
        "aiohttp>=3.9.0",
        "apscheduler>=3.10.0,<4",
        "boto3>=1.28.0",
        "botocore>=1.31.0",
        "kubernetes>=28.1.0",
        "prometheus-client>=0.17.0",
        "pyyaml>=6.0",
        "structlog>=23.1.0",
        "urllib3>=1.26.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-aiohttp>=1.0.5",
        ],
    },
    entry_points={
        "console_scripts": [
            "k8s-image-exporter=cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Topic :: System :: Monitoring",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
