#!/usr/bin/env python3

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Setup configuration for docbridge_common package.

This shared library provides the document import pipeline used by the
webhook Lambda function:
- HTML body extraction and sanitizing
- Source service API client
- Media sideloading to S3
- Content record and credential storage in DynamoDB
"""

from setuptools import find_packages, setup

setup(
    name="docbridge_common",
    version="0.1.0",
    description="Shared document import pipeline for the DocBridge webhook",
    packages=find_packages(),
    python_requires=">=3.12",
    install_requires=[
        "boto3>=1.34.0",
        # Source API client and media downloads
        "httpx>=0.27.0",
        # HTML parsing
        "beautifulsoup4>=4.12.0",
        "lxml>=5.0.0",
    ],
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
