#!/usr/bin/env python3
"""
Setup script for the credtrap credential capture honeypot
"""

import os
import re

from setuptools import setup


def read_version():
    """Read VERSION from utils/__init__.py without importing the package"""
    path = os.path.join(os.path.dirname(os.path.abspath(__file__)), "utils", "__init__.py")
    with open(path) as f:
        return re.search(r'^VERSION = "([^"]+)"', f.read(), re.M).group(1)


# Required Python packages
REQUIRED_PACKAGES = [
    "colorama",        # For terminal colors
    "requests",        # For webhook outputs
    "paramiko",        # For the SSH service
    "cryptography",    # For generated TLS certificates
]

TEST_PACKAGES = [
    "pytest",
]

setup(
    name="credtrap",
    version=read_version(),
    description="Credential capture honeypot for SSH, SNMP, LDAP and LDAPS",
    python_requires=">=3.8",
    packages=["services", "utils"],
    py_modules=["credtrap"],
    install_requires=REQUIRED_PACKAGES,
    extras_require={"test": TEST_PACKAGES},
    entry_points={
        "console_scripts": [
            "credtrap=credtrap:main",
        ],
    },
)
