"""
Setup script for elevational_range package
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file for long description
readme_file = Path(__file__).parent / "README.md"
if readme_file.exists():
    long_description = readme_file.read_text(encoding='utf-8')
else:
    long_description = "Elevational range analysis of eBird detections"

setup(
    name="elevational_range",
    version="0.1.0",
    description="Elevational ranges and range-shift inference from eBird checklists",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Elevational Range Project",
    packages=find_packages(include=["elevational_range", "elevational_range.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.22",
        "pandas>=1.5",
        "geopandas>=0.12",
        "matplotlib>=3.5",
        "scipy>=1.9",
        "shapely>=2.0",
        "pyproj>=3.3",
        "rasterio>=1.3",
        "affine<3",  # affine 3.x breaks rasterio.transform on Python 3.11
        "fiona>=1.8",
        "scikit-learn>=1.1",
        "seaborn>=0.12",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: GIS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="ebird birds elevation range-shift GIS",
)
