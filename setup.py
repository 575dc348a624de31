# setup.py
from setuptools import setup, find_packages

setup(
    name="httpretry",
    version="0.1.0",
    description="Retrying, resuming HTTP downloads on top of requests.",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        "requests>=2.28",
        "urllib3>=1.26",
        "tqdm>=4.60",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
)
