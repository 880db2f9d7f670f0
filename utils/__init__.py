"""Utility modules for the credtrap honeypot"""

VERSION = "0.1.0"
