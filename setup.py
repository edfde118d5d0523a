#!/usr/bin/env python3

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Setup configuration for lambdalet_common package.

This shared library provides utilities for the capture pipeline Lambdas:
- HTML to Markdown conversion
- Bedrock main content extraction
- S3 payload storage and SQS FIFO hand-off
- Notion publishing
- Data models and schemas
"""

from setuptools import find_packages, setup

setup(
    name="lambdalet_common",
    version="0.1.0",
    description="Shared utilities for the Lambdalet capture pipeline",
    package_dir={"": "lib"},
    packages=find_packages(where="lib", include=["lambdalet_common", "lambdalet_common.*"]),
    python_requires=">=3.11",
    install_requires=[
        "boto3>=1.34.0",
        "httpx>=0.27.0",
        "beautifulsoup4>=4.12.0",
        "markdownify>=1.1.0",
        "lxml>=5.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
            "moto[s3]>=5.0.0",
            "hypothesis>=6.100.0",
        ],
    },
    author="Development Team",
    license="MIT-0",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
)
