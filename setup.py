"""Setup configuration for leadtime"""

from setuptools import setup, find_packages

setup(
    name="branch-lifetime-metrics",
    version="0.1.0",
    description=(
        "Collects business-hours-adjusted branch life times of merged GitHub "
        "pull requests and sends them to Graphite."
    ),
    author="Branch Lifetime Metrics Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "branch-lifetime-metrics=leadtime.main:main",
        ],
    },
)
