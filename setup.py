# Copyright © 2025 Succinct Labs

import re
import os
import codecs
from os import path
from io import open
from setuptools import setup, find_packages


here = path.abspath(path.dirname(__file__))

with open(path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

with codecs.open(os.path.join(here, "tee_fleet/__init__.py"), encoding="utf-8") as init_file:
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]", init_file.read(), re.M)
    if not version_match:
        raise RuntimeError("Unable to find version string in tee_fleet/__init__.py")
    version_string = version_match.group(1)


requirements = [
    # AWS CDK
    "aws-cdk-lib>=2.120.0,<3.0.0",
    "constructs>=10.0.0,<11.0.0",

    # AWS API (preflight checks)
    "boto3>=1.40.0",

    # Configuration
    "python-dotenv>=1.0.0",

    # CLI
    "click>=8.1.0",
]

setup(
    name="tee_fleet",
    version=version_string,
    description="AWS CDK stack for a fleet of Nitro Enclave hosts",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/succinctlabs/sp1-tee",
    author="Succinct Labs",
    license="MIT",
    packages=find_packages(include=["tee_fleet", "tee_fleet.*"]),
    package_data={"tee_fleet": ["scripts/*.sh"]},
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tee-fleet=tee_fleet.cli:main",
        ]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: System :: Systems Administration",
    ],
)
