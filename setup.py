from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

install_requires = [
    # Image I/O and processing
    "numpy>=1.20.0",
    "scikit-image>=0.19.0",
    "tifffile>=2023.7.10",
    # Analysis and statistics
    "scipy>=1.7.0",
    "pandas>=1.4.0",
    # Configuration files
    "PyYAML>=6.0",
]

# Development tools only (optional)
extras_require = {
    "dev": [
        "pytest>=7.0.0",
        "pytest-cov>=3.0.0",
    ],
}

setup(
    name="roiquant",
    version="0.1.0",
    description="Segmentation and per-region quantification of 5D fluorescence microscopy images",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Bio-Informatics",
        "Topic :: Scientific/Engineering :: Image Processing",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require=extras_require,
)
