"""
Setup script for provmath package.
"""

from setuptools import setup, find_packages

setup(
    name="provmath",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        "provmath": ["data/*.csv"],
    },
    install_requires=[
        # Core numerical dependencies
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "scipy>=1.7.0",

        # Utilities
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
        ],
    },
    entry_points={
        'console_scripts': [
            'provmath=provmath.__main__:main',
        ],
    },
    description="PCA and k-means analysis of Argentine provincial indicators",
    keywords="pca, kmeans, clustering, argentina, provinces",
    python_requires=">=3.8",
)
