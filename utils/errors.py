#!/usr/bin/env python3
"""
Exception types shared across the honeypot
"""


class ConfigurationError(Exception):
    """Fatal setup-time error: bad file, bad port list, no usable listeners"""


class ServiceError(Exception):
    """A protocol listener could not be started"""
